# routers/webhook.py

import json
import logging
from typing import List
from urllib.parse import parse_qs

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from dispatcher import schedule
from logging_config import verbose
from models.event import Event
from models.hook import Hook
from utils import check_secret

logger = logging.getLogger(__name__)

# No source host sends payloads anywhere near this size.
MAX_BODY_SIZE = 16384


def route_path(url: str) -> str:
    """Convert ":name" and "*name" segments of a hook url to FastAPI path parameters."""
    segments = []
    for segment in url.split("/"):
        if segment.startswith(":"):
            segment = "{" + segment[1:] + "}"
        elif segment.startswith("*"):
            segment = "{" + segment[1:] + ":path}"
        segments.append(segment)
    return "/".join(segments)


def _parse_event(request: Request, body_bytes: bytes) -> Event:
    content_type = request.headers.get("Content-Type", "")
    if "application/x-www-form-urlencoded" in content_type:
        form_data = parse_qs(body_bytes.decode("utf-8"))
        if "payload" not in form_data:
            raise ValueError("No payload parameter in form data")
        return Event.from_payload(form_data["payload"][0].encode("utf-8"), request.headers)
    return Event.from_payload(body_bytes, request.headers)


def make_handler(hook: Hook):
    async def handle_hook(request: Request):
        logger.info(f"Called {request.url.path}")

        content_length = request.headers.get("Content-Length", "")
        if content_length.isdigit() and int(content_length) > MAX_BODY_SIZE:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Payload too large")

        body_bytes = await request.body()
        if len(body_bytes) > MAX_BODY_SIZE:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Payload too large")

        if verbose(2):
            try:
                pretty = json.dumps(json.loads(body_bytes), indent=2)
            except ValueError:
                pretty = body_bytes.decode("utf-8", errors="replace")
            logger.info(f"Hook {request.url.path} received data {pretty}")

        # 1. Verify secret.
        if hook.secret:
            client = request.client.host if request.client else "unknown"
            valid = check_secret(hook.secret, body_bytes, request.headers)
            if valid is None:
                logger.warning(f"Request with no secret for hook {request.url.path} from {client}")
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing secret")
            if not valid:
                logger.warning(f"Request with bad secret for hook {request.url.path} from {client}")
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid secret")

        # 2. Parse payload.
        try:
            event = _parse_event(request, body_bytes)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"Error parsing JSON for {request.url.path}: {e}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

        event["urlparams"] = dict(request.path_params)

        # 3. Dispatch in the background and respond immediately.
        schedule(event, hook)
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={"message": f"Hook {hook.url} accepted."},
        )

    return handle_hook


def build_router(hooks: List[Hook]) -> APIRouter:
    router = APIRouter()
    for hook in hooks:
        router.add_api_route(
            route_path(hook.url),
            make_handler(hook),
            methods=["POST"],
            status_code=status.HTTP_202_ACCEPTED,
            summary=f"Webhook {hook.url}",
        )
    return router
