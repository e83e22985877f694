"""Call outcome classification — ordered rule cascades over the canonical transcript.

Two cascades share one evaluator:

  LIVE_RULES (before report generation, transcript only):
    VOICEMAIL → HOSTILE → EARLY_EXIT → CONNECTED (structural) → UNCLEAR

  Persistence rules (after report generation): scored booking evidence first,
  then HOSTILE → REJECTED → VOICEMAIL, then the report generator's own label
  through a synonym table, then CONNECTED. Transcript evidence always outranks
  the model's label when it exists.

Each rule is a (key, reason, match) entry; match returns the evidence string
or None. First match wins.
"""

import re
from typing import Callable, NamedTuple, Optional
from loguru import logger

from config.schemas import BookingEvidence, CallResult, OutcomeKey, OutcomeResult
from config.settings import EnforcerPolicy, get_policy
from analysis.speakers import word_count


class OutcomeRule(NamedTuple):
    key: OutcomeKey
    reason: str
    match: Callable[[str, EnforcerPolicy], Optional[str]]


def _compile(patterns: list[str]) -> list[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


def _normalize_quotes(text: str) -> str:
    return (text or "").replace("’", "'").replace("‘", "'")


def find_phrases(text: str, patterns: list[re.Pattern]) -> list[str]:
    """Distinct matched snippets, in pattern order."""
    text = _normalize_quotes(text)
    found = []
    for p in patterns:
        m = p.search(text)
        if m and m.group(0).lower() not in (f.lower() for f in found):
            found.append(m.group(0))
    return found


# ── PHRASE SETS ──

VOICEMAIL_PATTERNS = _compile([
    r"\bvoice\s?mail\b",
    r"\bleave (?:a |your )?message\b",
    r"\bafter the (?:tone|beep)\b",
    r"\bhas been forwarded\b",
    r"\bplease record\b",
    r"\bmailbox\b",
    r"\bnot available\b",
    r"\bthe person you are trying to reach\b",
])

HOSTILE_PATTERNS = _compile([
    r"\bget out\b",
    r"\bget away\b",
    r"\bstop calling\b",
    r"\bdon'?t (?:ever )?call\b",
    r"\bdo not call\b",
    r"\bfuck\w*",
    r"\bbitch\w*",
    r"\basshole\w*",
    r"\bpiss off\b",
])

EARLY_EXIT_PATTERNS = _compile([
    r"\bnot interested\b",
    r"\bno thanks\b",
    r"\bgoodbye\b",
    r"\bhang up\b",
    r"\bwrong number\b",
    r"\bdon'?t want to talk\b",
    r"\bbusy\b",
    r"\bstop\b",
])

REJECTED_PATTERNS = _compile([
    r"\bnot interested\b",
    r"\bno thanks\b",
    r"\bno thank you\b",
    r"\bwe'?re good\b",
    r"\bwe are good\b",
    r"\b(?:we )?don'?t need (?:it|that|this|anything)\b",
    r"\bnot looking\b",
    r"\bnot for us\b",
    r"\bwe'?ll pass\b",
])

PLATFORM_PATTERNS = _compile([
    r"\bzoom\b",
    r"\bgoogle meet\b",
    r"\b(?:microsoft )?teams (?:call|meeting|link|invite)\b",
    r"\bcalendly\b",
    r"\bcalendar (?:invite|link)\b",
    r"\bmeeting (?:invite|link)\b",
    r"\bvideo call\b",
    r"\bwebex\b",
])

SCHEDULING_PATTERNS = _compile([
    r"\b(?:mon|tues|wednes|thurs|fri|satur|sun)day\b",
    r"\btomorrow\b",
    r"\bnext week\b",
    r"\b\d{1,2}(?::\d{2})?\s*(?:am|pm)\b",
    r"\b\d{1,2}(?::\d{2})?\s*[ap]\.m\.",
    r"\b\d{1,2} o'clock\b",
    r"\b(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?\s+\d{1,2}(?:st|nd|rd|th)?\b",
])

ACCEPTANCE_PATTERNS = _compile([
    r"\bsounds (?:good|great)\b",
    r"\bthat works\b",
    r"\bworks for me\b",
    r"\blet'?s do it\b",
    r"\bsee you then\b",
    r"\bi'?m in\b(?=\s*[.!,]|\s*$)",
    r"\b(?:yes|yeah|yep|sure|absolutely|definitely|perfect|okay|ok)\b",
])

# Weights for booking evidence
PLATFORM_POINTS = 2
SCHEDULING_POINTS = 2
ACCEPTANCE_POINTS = 1

_LABELED_LINE_RE = re.compile(r"^(?:you|prospect|speaker\s*[a-z0-9]{1,2})\s*:", re.IGNORECASE)
# "You:" is a canonical line label, so it only counts at the start of a line
_DIALOG_MARKER_RE = re.compile(
    r"(?:^you|\b(?:prospect|customer|rep|caller|agent|speaker\s*[a-z0-9]{1,2}))\s*:",
    re.IGNORECASE | re.MULTILINE,
)


# ── LIVE CASCADE ──

def _match_any(patterns: list[re.Pattern]) -> Callable[[str, EnforcerPolicy], Optional[str]]:
    def match(text: str, policy: EnforcerPolicy) -> Optional[str]:
        found = find_phrases(text, patterns)
        return ", ".join(found) if found else None
    return match


def _match_early_exit(text: str, policy: EnforcerPolicy) -> Optional[str]:
    opening = " ".join((text or "").split()[: policy.early_exit_words])
    found = find_phrases(opening, EARLY_EXIT_PATTERNS)
    return ", ".join(found) if found else None


def _match_connected(text: str, policy: EnforcerPolicy) -> Optional[str]:
    raw = text or ""
    lines = [l.strip() for l in raw.split("\n") if l.strip()]
    wc = word_count(raw)

    labeled = sum(1 for l in lines if _LABELED_LINE_RE.match(l))
    if labeled >= 3:
        return f"{labeled} labeled dialogue turns"

    markers = {re.sub(r"[\s:]+", "", m.lower()) for m in _DIALOG_MARKER_RE.findall(raw)}
    if len(markers) >= 2 and wc >= 25:
        return f"{len(markers)} distinct speaker markers over {wc} words"

    questions = raw.count("?")
    if wc >= 60 and questions >= 2:
        return f"{wc} words with {questions} questions"

    if len(lines) >= 6 and wc >= 60:
        return f"{len(lines)} lines over {wc} words"
    return None


LIVE_RULES = [
    OutcomeRule(OutcomeKey.VOICEMAIL, "Voicemail indicators present in transcript.",
                _match_any(VOICEMAIL_PATTERNS)),
    OutcomeRule(OutcomeKey.HOSTILE, "Hostility indicators present.",
                _match_any(HOSTILE_PATTERNS)),
    OutcomeRule(OutcomeKey.EARLY_EXIT, "Immediate rejection detected in opening words.",
                _match_early_exit),
    OutcomeRule(OutcomeKey.CONNECTED, "Conversation structure suggests a connected call.",
                _match_connected),
]

UNCLEAR_RESULT = OutcomeResult(
    key=OutcomeKey.UNCLEAR, reason="Not enough signal to classify outcome.", evidence=""
)


def evaluate_cascade(
    rules: list[OutcomeRule],
    text: str,
    fallback: OutcomeResult,
    policy: EnforcerPolicy | None = None,
) -> OutcomeResult:
    """Run rules in order; the first one returning evidence decides the outcome."""
    policy = policy or get_policy()
    for rule in rules:
        evidence = rule.match(text, policy)
        if evidence:
            logger.debug(f"Outcome rule {rule.key.value} matched: {evidence}")
            return OutcomeResult(key=rule.key, reason=rule.reason, evidence=evidence)
    return fallback


def classify_outcome(transcript: str, policy: EnforcerPolicy | None = None) -> OutcomeResult:
    """Live outcome for a canonical transcript. Empty input → UNCLEAR."""
    if not (transcript or "").strip():
        return UNCLEAR_RESULT
    return evaluate_cascade(LIVE_RULES, transcript, UNCLEAR_RESULT, policy)


# ── PERSISTENCE-TIME CLASSIFIER ──

OUTCOME_SYNONYMS = {
    "BOOKED": OutcomeKey.BOOKED_MEETING,
    "BOOKED_MEETING": OutcomeKey.BOOKED_MEETING,
    "MEETING_BOOKED": OutcomeKey.BOOKED_MEETING,
    "MEETING": OutcomeKey.BOOKED_MEETING,
    "APPOINTMENT_SET": OutcomeKey.BOOKED_MEETING,
    "NO_ANSWER": OutcomeKey.NO_ANSWER,
    "NOANSWER": OutcomeKey.NO_ANSWER,
    "NO_PICKUP": OutcomeKey.NO_ANSWER,
    "UNANSWERED": OutcomeKey.NO_ANSWER,
    "VOICEMAIL": OutcomeKey.VOICEMAIL,
    "VOICE_MAIL": OutcomeKey.VOICEMAIL,
    "LEFT_VOICEMAIL": OutcomeKey.VOICEMAIL,
    "NO_ANSWER_VOICEMAIL": OutcomeKey.VOICEMAIL,
    "REJECTED": OutcomeKey.REJECTED,
    "REJECTION": OutcomeKey.REJECTED,
    "NOT_INTERESTED": OutcomeKey.REJECTED,
    "DECLINED": OutcomeKey.REJECTED,
    "HOSTILE": OutcomeKey.HOSTILE,
    "EARLY_EXIT": OutcomeKey.EARLY_EXIT,
    "HUNG_UP": OutcomeKey.EARLY_EXIT,
    "CONNECTED": OutcomeKey.CONNECTED,
    "CONNECTED_UNCLEAR": OutcomeKey.CONNECTED,
    "ASKED_TO_EMAIL": OutcomeKey.CONNECTED,
}


def normalize_outcome_label(label) -> Optional[OutcomeKey]:
    """Map a free-form upstream label ("Booked Meeting", "no-answer") to an OutcomeKey."""
    if label is None:
        return None
    if isinstance(label, OutcomeKey):
        return label
    token = re.sub(r"[^A-Z0-9]+", "_", str(label).upper()).strip("_")
    return OUTCOME_SYNONYMS.get(token)


def score_booking_evidence(transcript: str) -> BookingEvidence:
    """Platform mention (+2), scheduling cue (+2), acceptance phrase (+1)."""
    platform = find_phrases(transcript, PLATFORM_PATTERNS)
    scheduling = find_phrases(transcript, SCHEDULING_PATTERNS)
    acceptance = find_phrases(transcript, ACCEPTANCE_PATTERNS)

    score = 0
    if platform:
        score += PLATFORM_POINTS
    if scheduling:
        score += SCHEDULING_POINTS
    if acceptance:
        score += ACCEPTANCE_POINTS

    return BookingEvidence(
        score=score,
        platform=platform[0] if platform else None,
        scheduling=scheduling[0] if scheduling else None,
        acceptance=acceptance[0] if acceptance else None,
    )


def reclassify_outcome(
    transcript: str,
    proposed_label=None,
    policy: EnforcerPolicy | None = None,
) -> OutcomeResult:
    """Persistence-time outcome: transcript evidence first, the model's label second.

    Args:
        transcript: Canonical transcript text
        proposed_label: Outcome label suggested by the report generator, any spelling
        policy: Thresholds (booked_score_min)

    Returns:
        OutcomeResult. CONNECTED with empty evidence when nothing else applies.
    """
    policy = policy or get_policy()
    text = transcript or ""

    booking = score_booking_evidence(text)
    if booking.score >= policy.booked_score_min:
        logger.info(f"Booked meeting evidence score={booking.score}: {booking.snippets}")
        return OutcomeResult(
            key=OutcomeKey.BOOKED_MEETING,
            reason=f"Booking evidence scored {booking.score} (≥ {policy.booked_score_min}).",
            evidence="; ".join(booking.snippets),
        )

    proposed = normalize_outcome_label(proposed_label)

    def _from_upstream(_text: str, _policy: EnforcerPolicy) -> Optional[str]:
        return f"upstream label '{proposed_label}'" if proposed else None

    rules = [
        OutcomeRule(OutcomeKey.HOSTILE, "Hostile language in transcript.",
                    _match_any(HOSTILE_PATTERNS)),
        OutcomeRule(OutcomeKey.REJECTED, "Prospect explicitly declined.",
                    _match_any(REJECTED_PATTERNS)),
        OutcomeRule(OutcomeKey.VOICEMAIL, "Voicemail indicators present in transcript.",
                    _match_any(VOICEMAIL_PATTERNS)),
    ]
    if proposed is not None:
        rules.append(OutcomeRule(proposed, "Outcome proposed by report generator.", _from_upstream))

    fallback = OutcomeResult(
        key=OutcomeKey.CONNECTED,
        reason="Reached a person, no strong evidence either way.",
        evidence="",
    )
    result = evaluate_cascade(rules, text, fallback, policy)
    if proposed is None and proposed_label:
        logger.debug(f"Ignoring unknown upstream outcome label: {proposed_label!r}")
    return result


# ── HUMAN-FACING LABELS ──

_CALL_RESULT_RULES = [
    (CallResult.BOOKED_MEETING, [
        r"\b(?:book(?:ed)?|schedule(?:d)?|calendar|set up|meet(?:ing)?|zoom|walkthrough|demo)\b",
    ]),
    (CallResult.ASKED_TO_EMAIL, [r"\b(?:send|email)\b.*\b(?:info|details|it|me|over)\b", r"\bjust\s+email\b"]),
    (CallResult.REJECTED, [r"\bnot interested\b", r"\bno thanks\b", r"\bstop calling\b", r"\bwe'?re good\b"]),
    (CallResult.VOICEMAIL, [r"\bvoicemail\b", r"\bleave a message\b", r"\bafter the tone\b"]),
    (CallResult.GATEKEEPER, [r"\bfront desk\b", r"\breception\b", r"\bgatekeeper\b", r"\bwho is this\b"]),
    (CallResult.FOLLOW_UP, [r"\bfollow up\b", r"\bcall me back\b", r"\bcheck back\b", r"\bnot a good time\b"]),
    (CallResult.PRICING, [r"\bprice\b", r"\bcost\b", r"\bhow much\b"]),
]
_CALL_RESULT_RULES = [(label, _compile(patterns)) for label, patterns in _CALL_RESULT_RULES]


def infer_call_result(transcript: str) -> CallResult:
    """Short result label for run history. Deliberately blunt priority order."""
    text = _normalize_quotes(transcript)
    for label, patterns in _CALL_RESULT_RULES:
        if any(p.search(text) for p in patterns):
            return label
    return CallResult.CONNECTED_UNCLEAR


_BANNERS = {
    OutcomeKey.VOICEMAIL: "📞 VOICEMAIL: Coaching focuses on voicemail structure and first 10 seconds.",
    OutcomeKey.EARLY_EXIT: "⚠ EARLY EXIT: Coaching focuses on opener/frame control (not deep discovery/close).",
    OutcomeKey.HOSTILE: "⚠ HOSTILE: Coaching focuses on de-escalation + permission + clean exit.",
    OutcomeKey.UNCLEAR: "⚠ OUTCOME UNCLEAR: Transcript is short/ambiguous. Coaching will be more generic.",
}


def outcome_banner(key: OutcomeKey) -> str:
    return _BANNERS.get(key, "")
