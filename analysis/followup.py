"""Follow-up message checks — reject generated follow-ups that aren't sendable as-is."""

import re

from config.schemas import FollowUpCheck


_PLACEHOLDER_PATTERNS = [
    re.compile(r"\[[^\]]+\]"),
    re.compile(r"\{[^}]+\}"),
    re.compile(r"\bTBD\b", re.IGNORECASE),
    re.compile(r"\blorem\b", re.IGNORECASE),
    re.compile(r"\bplaceholder\b", re.IGNORECASE),
]

_TRANSCRIPT_PREFIX_RE = re.compile(r"^(?:speaker|agent|prospect|rep|customer|caller)\s*[ab]?:", re.IGNORECASE)
_INLINE_SPEAKER_RE = re.compile(r"\bSpeaker\s*[AB]:", re.IGNORECASE)
_QUOTE_RE = re.compile(r"[\"“”]")

_NEXT_STEP_RE = re.compile(
    r"(tomorrow|thursday|next week|this week|schedule|calendar|time to|available|quick call"
    r"|follow[- ]?up|chat|meet|15[- ]?min|10[- ]?min)",
    re.IGNORECASE,
)

_PERSONAL_LIFE_PATTERNS = [
    re.compile(r"\bmy (?:wife|husband|kid|kids|mom|dad|birthday|party)\b", re.IGNORECASE),
    re.compile(r"\bI'?ll let my (?:wife|husband)\b", re.IGNORECASE),
]


def contains_placeholders(text: str) -> bool:
    return any(p.search(text or "") for p in _PLACEHOLDER_PATTERNS)


def looks_like_transcript(text: str) -> bool:
    t = (text or "").strip()
    if not t:
        return False
    if _INLINE_SPEAKER_RE.search(t):
        return True
    if any(_TRANSCRIPT_PREFIX_RE.match(line.strip()) for line in t.splitlines()):
        return True
    return len(_QUOTE_RE.findall(t)) >= 4


def contains_next_step(text: str) -> bool:
    return bool(_NEXT_STEP_RE.search(text or ""))


def includes_entity_reference(text: str, entity_name: str) -> bool:
    """True when text mentions a meaningful token of entity_name (or there is no name)."""
    name = (entity_name or "").lower()
    tokens = [t for t in re.split(r"[^a-z0-9]+", name) if len(t) >= 3 or t == "ai"]
    if not tokens:
        return True
    lowered = (text or "").lower()
    for tok in tokens:
        if len(tok) >= 5 and tok in lowered:
            return True
        if len(tok) < 5 and re.search(rf"\b{re.escape(tok)}\b", lowered):
            return True
    return False


def contains_personal_life(text: str) -> bool:
    return any(p.search(text or "") for p in _PERSONAL_LIFE_PATTERNS)


def check_follow_up(text: str, entity_name: str = "") -> FollowUpCheck:
    failures = []
    if not (text or "").strip():
        failures.append("empty")
    else:
        if contains_placeholders(text):
            failures.append("placeholder")
        if looks_like_transcript(text):
            failures.append("transcript_format")
        if not contains_next_step(text):
            failures.append("no_next_step")
        if not includes_entity_reference(text, entity_name):
            failures.append("missing_entity_reference")
        if contains_personal_life(text):
            failures.append("personal_life")
    return FollowUpCheck(passed=not failures, failures=failures)
