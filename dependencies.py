# dependencies.py

import ipaddress
import logging

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


def require_allowed_ip(request: Request):
    """Reject clients outside the configured accept_ips networks."""
    networks = request.app.state.config.accept_networks
    if not networks:
        return

    host = request.client.host if request.client else None
    try:
        address = ipaddress.ip_address(host)
    except (TypeError, ValueError):
        logger.warning(f"Rejected request from unparseable address {host!r}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    if not any(address in network for network in networks):
        logger.warning(f"Rejected request from {host}: not in accept_ips")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
