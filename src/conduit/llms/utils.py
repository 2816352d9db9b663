from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Utility functions for LLM interactions, including JSON helpers and backoff strategies.
"""
import asyncio
import json
import random
from typing import Any, Dict, Optional


def clamp_str(s: str, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + "…"


def safe_json_loads(s: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(s)
        return obj if isinstance(obj, dict) else None
    except (TypeError, ValueError):
        return None


def strip_code_fence(text: str) -> str:
    """
    If `text` is wrapped in a fenced code block (``` or ~~~), return the body.
    Otherwise return the original text stripped.
    """
    t = (text or "").strip()
    lines = t.splitlines()
    if not lines:
        return t

    first = lines[0].lstrip()
    fence = first[:3] if first.startswith(("```", "~~~")) else None
    if fence is None:
        return t

    body = lines[1:]
    for i, line in enumerate(body):
        if line.lstrip().startswith(fence):
            body = body[:i]
            break
    return "\n".join(body).strip()


def backoff_delay(attempt: int, base_s: float, jitter_s: float = 0.0) -> float:
    """
    Exponential backoff with optional jitter.
    attempt=0 => base, attempt=1 => 2*base, etc.
    """
    exp = base_s * (2 ** attempt)
    if jitter_s <= 0:
        return exp
    return exp + random.uniform(0.0, jitter_s)


def run_sync(coro):
    """
    Run an async coroutine from sync context.
    If already inside a running event loop, raise a clear error.
    """
    try:
        # If this succeeds, we're inside a running event loop context.
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop in this thread => safe to use asyncio.run
        return asyncio.run(coro)

    coro.close()
    raise RuntimeError(
        "Cannot use *_sync methods inside a running event loop. Use async methods instead."
    )
