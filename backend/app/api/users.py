"""
User tracking endpoint used by the extension on install/startup.
"""

from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Request

from backend.app.services import usage

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/track-user")
async def track_user(request: Request, background_tasks: BackgroundTasks):
    """Record that a user exists. Always answers 200 so the client never breaks."""
    try:
        body: Any = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return {"success": False}

    user_id = body.get("userId")
    if not isinstance(user_id, str) or not user_id.strip():
        return {"success": False}

    email: Optional[str] = body.get("email") if isinstance(body.get("email"), str) else None
    background_tasks.add_task(
        usage.track_user,
        user_id.strip(),
        email=email,
        is_premium=bool(body.get("isPremium")),
    )
    return {"success": True}
