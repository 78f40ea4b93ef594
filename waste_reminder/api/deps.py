"""FastAPI dependencies: admin token for internal routes."""

import hmac

from fastapi import HTTPException, Request

from waste_reminder.config import settings


async def require_admin(request: Request) -> None:
    """Internal routes need X-Admin-Token matching settings.admin_token; disabled (404) when unset."""
    expected = settings.admin_token.strip()
    if not expected:
        raise HTTPException(status_code=404, detail="Not found")
    provided = request.headers.get("X-Admin-Token", "")
    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid admin token")
