"""
Drip Check: rewrites corporate-sounding posts into plain, human text.

The package holds the provider-facing pieces (LLM clients and prompt
templates). The HTTP service lives in ``backend.app``.
"""

__version__ = "1.0.0"
