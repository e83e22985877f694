"""45-second script contract — the one machine-checkable gate on generated output.

The report generator is asked for a script under 90 words. Whether or not it
complied, the surfaced script is truncated to the word limit and closed with
terminal punctuation here.
"""

import re
from loguru import logger

from config.schemas import EnforcedScript
from config.settings import EnforcerPolicy, get_policy
from analysis.speakers import word_count


_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([,.!?;:])")
_TERMINAL_RE = re.compile(r"[.!?]$")
_TRAILING_SEPARATOR_RE = re.compile(r"[\s,;:]+$")
_SCRIPT_SECTION_RE = re.compile(r"##\s*5\)\s*45-Second Script[^\n]*\n([\s\S]*)$", re.IGNORECASE)
_LEADING_MARKERS_RE = re.compile(r"^[-*>\s]+")


def slice_words(s: str, n: int) -> str:
    """First n words of s, with spacing before punctuation repaired."""
    words = (s or "").split()
    if len(words) <= n:
        return (s or "").strip()
    return _SPACE_BEFORE_PUNCT_RE.sub(r"\1", " ".join(words[:n])).strip()


def enforce_script(script: str, policy: EnforcerPolicy | None = None) -> EnforcedScript:
    """Truncate to the word limit and make sure the script ends like a sentence.

    Empty input stays empty (word_count=0, passed=False); nothing is invented.
    """
    policy = policy or get_policy()
    text = (script or "").strip()
    original_words = word_count(text)

    if original_words > policy.script_max_words:
        text = slice_words(text, policy.script_max_words)
        logger.info(f"Script truncated: {original_words} → {policy.script_max_words} words")

    if text and not _TERMINAL_RE.search(text):
        text = _TRAILING_SEPARATOR_RE.sub("", text)
        if text:
            text += "?"

    final_words = word_count(text)
    return EnforcedScript(
        text=text,
        word_count=final_words,
        passed=0 < final_words <= policy.script_max_words,
    )


def extract_script_section(report: str) -> str:
    """Body of the '## 5) 45-Second Script' section, or '' when the report lacks it."""
    m = _SCRIPT_SECTION_RE.search(report or "")
    if not m:
        return ""
    return _LEADING_MARKERS_RE.sub("", m.group(1).strip()).strip()
