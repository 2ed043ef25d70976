"""
Humanize endpoint: premium gate -> daily quota -> rewrite -> usage log.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel

from backend.app.api.deps import get_premium_gate, get_rate_limiter, get_rewriter
from backend.app.core.premium import PremiumGate
from backend.app.core.rate_limit import DailyRateLimiter, check_rate_limit
from backend.app.services import usage
from backend.app.services.rewrite import RewriteError, RewriteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["humanize"])


class HumanizeRequest(BaseModel):
    # All optional so missing fields surface as our own 400, not a 422.
    text: Optional[str] = None
    userId: Optional[str] = None
    # Prompt context and an opaque token; neither is validated here.
    currentScore: Optional[Any] = None
    premiumToken: Optional[Any] = None


class UsageOut(BaseModel):
    inputTokens: int
    outputTokens: int
    totalTokens: int


class HumanizeResponse(BaseModel):
    success: bool = True
    humanizedText: str
    usage: UsageOut


def _token_str(value: Any) -> Optional[str]:
    """Tokens are strings or epoch numbers; anything else reads as no token."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


@router.post("/humanize", response_model=HumanizeResponse)
async def humanize(
    body: HumanizeRequest,
    background_tasks: BackgroundTasks,
    gate: PremiumGate = Depends(get_premium_gate),
    limiter: DailyRateLimiter = Depends(get_rate_limiter),
    rewriter: RewriteService = Depends(get_rewriter),
):
    text = body.text or ""
    user_id = (body.userId or "").strip()
    if not text or not user_id:
        raise HTTPException(status_code=400, detail="Missing required fields")

    token = _token_str(body.premiumToken)
    if not await gate.is_premium(user_id, token):
        raise HTTPException(status_code=403, detail="Premium subscription required")

    check_rate_limit(user_id, limiter)

    try:
        result = await rewriter.rewrite(text, body.currentScore)
    except RewriteError as e:
        logger.error("Humanization failed for user %s: %s", user_id, e)
        raise HTTPException(status_code=500, detail="Failed to humanize post")

    logger.info(
        "Humanization request: user %s, input %d chars, output %d chars",
        user_id, len(text), len(result.text),
    )

    background_tasks.add_task(
        usage.record_usage,
        user_id,
        usage.ACTION_HUMANIZE,
        {
            "inputLength": len(text),
            "outputLength": len(result.text),
            "score": body.currentScore,
            "isPremium": True,
            "inputTokens": result.input_tokens,
            "outputTokens": result.output_tokens,
            "model": result.model,
        },
    )

    return HumanizeResponse(
        humanizedText=result.text,
        usage=UsageOut(
            inputTokens=result.input_tokens,
            outputTokens=result.output_tokens,
            totalTokens=result.total_tokens,
        ),
    )
