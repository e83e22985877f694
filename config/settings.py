"""Enforcer policy — tunable thresholds with environment-variable defaults.

Every number here was picked empirically. Treat them as policy knobs rather
than structural invariants: callers may pass their own EnforcerPolicy to any
analysis function, and deployments can shift defaults via .env.
"""

import os
from pydantic import BaseModel, Field


ENFORCER_VERSION = os.getenv("CALIBRATE_ENFORCER_VERSION", "ENFORCER_V9_2025-12-27")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


class EnforcerPolicy(BaseModel):
    """Thresholds consulted by the analysis stages."""

    # Diarization gate: share of total words per speaker
    top_share_max: float = Field(
        default_factory=lambda: _env_float("CALIBRATE_TOP_SHARE_MAX", 0.88), ge=0, le=1
    )
    second_share_min: float = Field(
        default_factory=lambda: _env_float("CALIBRATE_SECOND_SHARE_MIN", 0.12), ge=0, le=1
    )

    # Role scoring
    role_net_margin: int = Field(default_factory=lambda: _env_int("CALIBRATE_ROLE_NET_MARGIN", 2), ge=0)
    role_scan_lines: int = Field(default_factory=lambda: _env_int("CALIBRATE_ROLE_SCAN_LINES", 30), ge=1)
    role_scan_chars: int = Field(default_factory=lambda: _env_int("CALIBRATE_ROLE_SCAN_CHARS", 4000), ge=1)

    # Outcome cascade
    early_exit_words: int = Field(default_factory=lambda: _env_int("CALIBRATE_EARLY_EXIT_WORDS", 35), ge=1)
    booked_score_min: int = Field(default_factory=lambda: _env_int("CALIBRATE_BOOKED_SCORE_MIN", 4), ge=1)

    # Script contract
    script_max_words: int = Field(default_factory=lambda: _env_int("CALIBRATE_SCRIPT_MAX_WORDS", 90), ge=1)


_default_policy: EnforcerPolicy | None = None


def get_policy() -> EnforcerPolicy:
    """Process-wide default policy, built from the environment on first use."""
    global _default_policy
    if _default_policy is None:
        _default_policy = EnforcerPolicy()
    return _default_policy
