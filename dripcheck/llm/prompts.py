"""
Prompt templates for the rewrite step.
"""

from __future__ import annotations

from typing import Any

TARGET_SCORE = 80

REWRITE_TEMPLATE = """Rewrite this LinkedIn post to score {target}%+ on a humanity scale. Current score: {score} (100% = perfectly human, 0% = corporate robot).

Original post:
{text}

Rewrite for {target}%+ humanity score by:
1. Replace buzzwords (momentum, transformation, flywheel, leverage, synergy) with simple words
2. Remove formatting tricks (arrows, em dashes, excessive emojis)
3. Combine short sentences into natural paragraphs
4. Write like you're talking to a friend over coffee
5. Keep all facts and core message the same
6. Make it the same length or shorter

Start your response with the first sentence of the rewritten post. Output only the rewritten post text."""


def format_score(score: Any) -> str:
    """
    Render the client-supplied humanity score ("unknown" when absent).

    The score is prompt context only and is never validated, so whatever the
    client sent is rendered as text.
    """
    if score is None:
        return "unknown"
    if isinstance(score, float) and score.is_integer():
        score = int(score)
    rendered = str(score).strip()
    if not rendered:
        return "unknown"
    return rendered if rendered.endswith("%") else f"{rendered}%"


def build_rewrite_prompt(text: str, current_score: Any = None) -> str:
    """Build the rewrite prompt. Output depends only on the arguments."""
    return REWRITE_TEMPLATE.format(
        target=TARGET_SCORE,
        score=format_score(current_score),
        text=text,
    )


def leading_token(text: str) -> str:
    """
    First letter or digit of ``text``; used to prime the reply.

    Leading emojis, arrows and bullets are skipped since the rewrite is told
    to drop them. Empty when the text has no letters or digits.
    """
    for ch in text or "":
        if ch.isalnum():
            return ch
    return ""
