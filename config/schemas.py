"""Calibrate Pydantic schemas — structured records for every enforcer stage."""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional
from enum import Enum


# ── TRANSCRIPT ──

class Utterance(BaseModel):
    """One diarized utterance as delivered by the transcription provider."""
    model_config = ConfigDict(frozen=True)

    speaker: str = Field(default="unknown", description="Raw speaker id from the diarizer")
    text: str = ""


class CanonicalLine(BaseModel):
    """One merged transcript turn under a canonical speaker label."""
    model_config = ConfigDict(frozen=True)

    speaker: str = Field(description="'Speaker A'..'Speaker Z', 'You', 'Prospect' or 'Other'")
    text: str

    def render(self) -> str:
        return f"{self.speaker}: {self.text}"


class SpeakerStats(BaseModel):
    word_count: int = 0
    turn_count: int = 0


class NormalizedTranscript(BaseModel):
    """Output of speaker normalization before any role upgrade."""
    lines: list[CanonicalLine] = Field(default_factory=list)
    speaker_map: dict[str, str] = Field(
        default_factory=dict, description="Normalized raw speaker id → neutral label"
    )
    utterances: int = Field(default=0, description="Number of raw utterances received")


# ── ROLE INFERENCE ──

class RoleVerdict(str, Enum):
    CONFIDENT = "confident"
    NEUTRAL = "neutral"
    INSUFFICIENT_SIGNAL = "insufficient_signal"


class RoleConfidence(BaseModel):
    """Confidence-gated role assignment. Neutral output is a valid result."""
    diarization_confident: bool = False
    role_confident: bool = False
    reason: str = ""
    verdict: RoleVerdict = RoleVerdict.INSUFFICIENT_SIGNAL
    role_map: dict[str, str] = Field(
        default_factory=dict, description="Neutral label → 'You'/'Prospect' (only when confident)"
    )
    top_share: Optional[float] = None
    second_share: Optional[float] = None
    method: Optional[str] = Field(None, description="'net_score' or 'cold_call_opener'")

    @model_validator(mode="after")
    def _check_consistency(self):
        if self.role_confident and not self.diarization_confident:
            raise ValueError("role_confident requires diarization_confident")
        if self.role_confident != (self.verdict == RoleVerdict.CONFIDENT):
            raise ValueError("role_confident must match a CONFIDENT verdict")
        if self.role_map and not self.role_confident:
            raise ValueError("role_map is only populated for confident roles")
        return self


# ── CALL OUTCOME ──

class OutcomeKey(str, Enum):
    VOICEMAIL = "VOICEMAIL"
    HOSTILE = "HOSTILE"
    EARLY_EXIT = "EARLY_EXIT"
    BOOKED_MEETING = "BOOKED_MEETING"
    REJECTED = "REJECTED"
    CONNECTED = "CONNECTED"
    UNCLEAR = "UNCLEAR"
    NO_ANSWER = "NO_ANSWER"


class OutcomeResult(BaseModel):
    key: OutcomeKey
    reason: str
    evidence: str = Field(default="", description="Matched phrase(s); empty only for fallbacks")


class BookingEvidence(BaseModel):
    """Scored evidence that a meeting was booked."""
    score: int = 0
    platform: Optional[str] = None
    scheduling: Optional[str] = None
    acceptance: Optional[str] = None

    @property
    def snippets(self) -> list[str]:
        return [s for s in (self.platform, self.scheduling, self.acceptance) if s]


class CallResult(str, Enum):
    BOOKED_MEETING = "Booked Meeting"
    ASKED_TO_EMAIL = "Asked to Email"
    REJECTED = "Rejected"
    VOICEMAIL = "No Answer / Voicemail"
    GATEKEEPER = "Gatekeeper"
    FOLLOW_UP = "Follow-up Needed"
    PRICING = "Pricing Question"
    CONNECTED_UNCLEAR = "Connected / Unclear"


# ── BUSINESS CONTEXT ──

class InferredBusinessContext(BaseModel):
    """Read-only inferences from transcript text."""
    offer_keywords: list[str] = Field(default_factory=list)
    prospect_type: Optional[str] = None
    prospect_name: Optional[str] = None
    location: Optional[str] = None


class ContextConflict(BaseModel):
    conflict_message: str = ""
    missing_info: list[str] = Field(default_factory=list, max_length=2)

    @property
    def flagged(self) -> bool:
        return bool(self.conflict_message)


# ── SCRIPT / FOLLOW-UP ──

class EnforcedScript(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    word_count: int = Field(ge=0)
    passed: bool = Field(alias="pass")


class FollowUpCheck(BaseModel):
    passed: bool
    failures: list[str] = Field(default_factory=list)


# ── MASTER OUTPUT: DIAGNOSTICS BUNDLE ──

class CallDiagnostics(BaseModel):
    """Everything the enforcer derives from one call before report generation."""

    run_id: str
    enforcer_version: str

    # Inputs (echoed for persistence)
    user_context: str = ""
    category: str = ""

    # Transcript
    lines: list[CanonicalLine] = Field(default_factory=list)
    transcript: str = Field(default="", description="'Label: text' per line, newline-joined")
    speaker_map: dict[str, str] = Field(default_factory=dict)
    utterance_count: int = 0
    turn_count: int = 0

    # Roles
    role_confidence: RoleConfidence = Field(default_factory=RoleConfidence)

    # Outcome
    outcome: OutcomeResult
    call_outcome_banner: str = ""

    # Context
    inferred: InferredBusinessContext = Field(default_factory=InferredBusinessContext)
    inferred_lines: list[str] = Field(default_factory=list)
    context_conflict: ContextConflict = Field(default_factory=ContextConflict)
    derived_from_template: str = "(none)"

    stage_times: dict[str, float] = Field(default_factory=dict)


class FinalizedRun(BaseModel):
    """Diagnostics after the generated report has been checked."""

    run_id: str
    report: str = ""
    script: EnforcedScript
    outcome: OutcomeResult
    call_result: CallResult
    title: str
    scenario_mismatch: bool = False
    mismatch_reason: Optional[str] = None
    follow_up: Optional[FollowUpCheck] = Field(None, description="Set when a follow-up message was checked")
