import logging
from typing import Optional

import httpx
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from .config import ALLOWED_EMAILS, AUTH_API_KEY, AUTH_USER_URL

logger = logging.getLogger(__name__)

security = HTTPBearer()


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


async def verify_access_token(token: str) -> dict:
    """Ask the identity provider who owns the token"""
    if not AUTH_USER_URL:
        logger.error("❌ AUTH_USER_URL not configured")
        raise HTTPException(status_code=500, detail="Authentication provider not configured")

    headers = {"Authorization": f"Bearer {token}"}
    if AUTH_API_KEY:
        headers["apikey"] = AUTH_API_KEY

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(AUTH_USER_URL, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"❌ Token introspection failed: {e}")
        raise HTTPException(status_code=503, detail="Authentication provider unavailable") from e

    if response.status_code != 200:
        logger.warning(f"⚠️ Token rejected by identity provider: {response.status_code}")
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    return response.json()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """Get current user from the bearer token"""

    if not credentials or not credentials.credentials:
        logger.error("❌ No credentials provided")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    user_data = await verify_access_token(credentials.credentials)

    user_id = user_data.get("id") or user_data.get("sub")
    email = (user_data.get("email") or "").lower() or None

    if not user_id:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(user_data.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    if ALLOWED_EMAILS and email not in ALLOWED_EMAILS:
        logger.warning(f"🚫 Access denied for {email}")
        raise HTTPException(status_code=403, detail="Access denied")

    logger.debug(f"✅ User authenticated: {email}")
    return CurrentUser(id=str(user_id), email=email)
