# utils.py

import hashlib
import hmac
import logging
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


def verify_signature(secret: str, request_body: bytes, signature: Optional[str]) -> bool:
    """Check a GitHub style "sha256=<hex>" HMAC signature of the body."""
    if signature is None:
        logger.warning("No signature provided.")
        return False

    try:
        sha_name, signature = signature.split('=', 1)
    except ValueError:
        logger.warning("Invalid signature format.")
        return False

    if sha_name != 'sha256':
        logger.warning(f"Unsupported signature type: {sha_name}")
        return False

    return verify_hex_digest(secret, request_body, signature)


def verify_hex_digest(secret: str, request_body: bytes, digest: str) -> bool:
    mac = hmac.new(secret.encode(), msg=request_body, digestmod=hashlib.sha256)
    is_valid = hmac.compare_digest(mac.hexdigest(), digest.strip().lower())
    if is_valid:
        logger.debug("Webhook signature verified successfully.")
    else:
        logger.warning("Webhook signature verification failed.")
    return is_valid


def check_secret(secret: str, request_body: bytes, headers: Mapping[str, str]) -> Optional[bool]:
    """
    Validate a request against a hook secret.

    Accepts a GitLab X-Gitlab-Token equal to the secret, a GitHub
    X-Hub-Signature-256 or a Gitea X-Gitea-Signature HMAC of the body.

    Returns:
        True if valid, False if a credential was present but wrong, None if
        the request carried no credential at all.
    """
    token = headers.get("X-Gitlab-Token")
    if token:
        return hmac.compare_digest(token.encode(), secret.encode())

    signature = headers.get("X-Hub-Signature-256")
    if signature:
        return verify_signature(secret, request_body, signature)

    gitea_signature = headers.get("X-Gitea-Signature")
    if gitea_signature:
        return verify_hex_digest(secret, request_body, gitea_signature)

    return None
