# routers/health.py

from fastapi import APIRouter, Request
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", summary="Health Check Endpoint")
def health_check(request: Request):
    logger.debug("Health check endpoint was called.")
    return {"status": "OK", "hooks": len(request.app.state.config.hooks)}
