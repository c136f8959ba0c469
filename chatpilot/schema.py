from __future__ import annotations
from typing import Any, Dict, Optional
import json
import re

from chatpilot.models import ConversationVerdict

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_JSON_OBJ_RE = re.compile(r"\{[\s\S]*\}")


def try_parse_json(text: str) -> Optional[Dict[str, Any]]:
    """
    Best-effort JSON extraction (handles fenced blocks and extra text around JSON).
    Returns None when nothing parseable is found.
    """
    s = (text or "").strip()
    if not s:
        return None

    # direct JSON
    try:
        obj = json.loads(s)
        return obj if isinstance(obj, dict) else None
    except ValueError:
        pass

    # ```json ... ``` first, then the first {...last}
    m = _FENCED_JSON_RE.search(s) or _JSON_OBJ_RE.search(s)
    if not m:
        return None
    chunk = m.group(1) if m.re is _FENCED_JSON_RE else m.group(0)
    try:
        obj = json.loads(chunk)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def normalize_verdict(obj: Dict[str, Any]) -> ConversationVerdict:
    """
    Ensure a stable verdict whatever casing or types the model used.
    """
    def pick(*keys: str, default: Any = None) -> Any:
        for k in keys:
            if k in obj and obj[k] is not None:
                return obj[k]
        return default

    return ConversationVerdict(
        new_message_detected=_as_bool(pick("newMessageDetected", "new_message_detected", default=False)),
        should_reply=_as_bool(pick("shouldReply", "should_reply", default=False)),
        message=str(pick("message", default="")).strip(),
        sender=str(pick("sender", default="")).strip() or "unknown",
        reasoning=str(pick("reasoning", default="")).strip(),
    )


def fallback_verdict(text: str) -> ConversationVerdict:
    """Keyword-based verdict for model output that is not JSON at all."""
    lowered = (text or "").lower()
    detected = "new message detected" in lowered or "should reply" in lowered
    return ConversationVerdict(
        new_message_detected=detected,
        should_reply=detected,
        message=text or "",
        sender="unknown",
        reasoning="Failed to parse structured response",
    )


def parse_verdict(text: str) -> ConversationVerdict:
    """Turn raw analyzer output into a verdict. Never raises."""
    parsed = try_parse_json(text)
    if parsed is None:
        return fallback_verdict(text)
    return normalize_verdict(parsed)
