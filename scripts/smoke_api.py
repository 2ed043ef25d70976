#!/usr/bin/env python3
"""
Smoke test for a running Drip Check API (no LLM spend unless asked).
Usage:
  API_BASE=https://drip-check-api.example.com python scripts/smoke_api.py
  python scripts/smoke_api.py  # defaults to http://localhost:3000
  SMOKE_HUMANIZE=1 python scripts/smoke_api.py  # also calls the LLM once
"""
import json
import os
import sys
import time
import urllib.request
import urllib.error


def main():
    base = os.environ.get("API_BASE", "http://localhost:3000").rstrip("/")
    failed = []

    def request(method: str, path: str, payload=None) -> int:
        url = base + (path if path.startswith("/") else "/" + path)
        data = json.dumps(payload).encode() if payload is not None else None
        req = urllib.request.Request(
            url, data=data, method=method,
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib.request.urlopen(req, timeout=30) as r:
                return r.status
        except urllib.error.HTTPError as e:
            return e.code
        except Exception as e:
            print(f"  ERROR: {e}")
            return 0

    def check(label: str, status: int, expected: int) -> None:
        if status == expected:
            print(f"  {label} ... OK")
        else:
            print(f"  {label} ... FAIL ({status}, expected {expected})")
            failed.append(label)

    print(f"Smoke testing API at {base}")

    check("GET /health", request("GET", "/health"), 200)
    check("POST /api/humanize (missing fields)", request("POST", "/api/humanize", {"text": "hi"}), 400)
    check(
        "POST /api/humanize (not premium)",
        request("POST", "/api/humanize", {"text": "hi", "userId": f"smoke-{int(time.time())}", "currentScore": 10}),
        403,
    )
    check("POST /api/track-user", request("POST", "/api/track-user", {"userId": "smoke-user", "isPremium": False}), 200)

    if os.environ.get("SMOKE_HUMANIZE"):
        check(
            "POST /api/humanize (fresh token)",
            request("POST", "/api/humanize", {
                "text": "I am leveraging synergies to drive growth!",
                "userId": "smoke-premium",
                "currentScore": 20,
                "premiumToken": str(int(time.time() * 1000)),
            }),
            200,
        )

    if failed:
        print(f"\nFailed: {', '.join(failed)}")
        sys.exit(1)
    print("\nAll smoke checks passed.")


if __name__ == "__main__":
    main()
