"""Shared access-password gate for the /api routes."""
import os
import secrets
from typing import Optional

from fastapi import Header, HTTPException

from log import get_logger

logger = get_logger("lang2lang.auth")

# --- Config ---
# Empty disables the gate (local development)
APP_PASSWORD = os.environ.get("LANG2LANG_PASSWORD", "")


def check_password(supplied: Optional[str]) -> bool:
    if not APP_PASSWORD:
        return True
    if not supplied:
        return False
    return secrets.compare_digest(supplied.encode(), APP_PASSWORD.encode())


async def require_password(x_access_password: Optional[str] = Header(default=None)):
    """FastAPI dependency that validates the X-Access-Password header."""
    if not check_password(x_access_password):
        logger.warning("Rejected request with invalid access password", extra={"component": "auth"})
        raise HTTPException(401, "Unauthorized: Invalid or missing access password.")
