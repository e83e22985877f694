"""Pipeline Orchestrator — runs the enforcer stages for one call and bundles diagnostics.

  Stage 1: Speaker normalization (utterances or inline-labeled text)
  Stage 2: Role inference (confidence-gated You / Prospect)
  Stage 3: Outcome cascade + business-context inference
  Stage 4: Context conflict / missing info
  (report generation happens outside, using pipeline.prompts)
  Stage 5: finalize_report() — script enforcement, persistence-time outcome,
           optional follow-up message check

All stages are CPU-only string work. A failing stage is logged and replaced by
its advisory default (neutral roles, UNCLEAR, no conflict) so one bad input
never sinks the run.
"""

import re
import time
import uuid
from typing import Optional
from loguru import logger

from analysis.speakers import normalize_utterances, parse_labeled_text, render_transcript, clean_text
from analysis.roles import score_roles, apply_roles
from analysis.outcome import (
    UNCLEAR_RESULT,
    classify_outcome,
    infer_call_result,
    outcome_banner,
    reclassify_outcome,
)
from analysis.context import detect_context_conflict, infer_business_context, inferred_lines
from analysis.script_enforcer import enforce_script, extract_script_section
from analysis.followup import check_follow_up
from config.schemas import (
    CallDiagnostics,
    CallResult,
    ContextConflict,
    FinalizedRun,
    InferredBusinessContext,
    NormalizedTranscript,
    RoleConfidence,
)
from config.settings import ENFORCER_VERSION, EnforcerPolicy, get_policy
from pipeline.prompts import derived_from_template


_LABELED_TURN_RE = re.compile(r"^(?:you:|prospect:|speaker\s*[a-z0-9]{1,2}\s*:)", re.IGNORECASE)


def turn_count(transcript: str) -> int:
    """Labeled turns if any, otherwise non-empty lines."""
    lines = [l.strip() for l in (transcript or "").split("\n") if l.strip()]
    labeled = sum(1 for l in lines if _LABELED_TURN_RE.match(l))
    return labeled or len(lines)


def analyze_call(
    utterances: Optional[list] = None,
    transcript_text: Optional[str] = None,
    user_context: str = "",
    category: str = "",
    run_id: Optional[str] = None,
    policy: Optional[EnforcerPolicy] = None,
) -> CallDiagnostics:
    """Run the enforcer over one call.

    Args:
        utterances: Diarized utterances (preferred when available)
        transcript_text: Inline-labeled transcript blob, used when utterances is empty
        user_context: What the user says they sell and to whom
        category: Optional template tag (style nudge only)
        run_id: Identifier for log correlation (generated if not provided)
        policy: Threshold overrides (process default otherwise)

    Returns:
        CallDiagnostics ready for report generation and persistence
    """
    run_id = run_id or str(uuid.uuid4())[:8]
    policy = policy or get_policy()
    user_context = clean_text(user_context)
    category = clean_text(category)
    stage_times: dict[str, float] = {}

    def _timed(name: str, started: float):
        stage_times[name] = round(time.perf_counter() - started, 4)

    # ── STAGE 1: SPEAKER NORMALIZATION ──
    t0 = time.perf_counter()
    if utterances:
        logger.info(f"[{run_id}] Stage 1: Normalizing {len(utterances)} utterances")
        normalized = normalize_utterances(utterances)
    else:
        logger.info(f"[{run_id}] Stage 1: Parsing inline-labeled transcript")
        normalized = NormalizedTranscript(lines=parse_labeled_text(transcript_text))
    _timed("Stage 1: Normalize", t0)

    # ── STAGE 2: ROLE INFERENCE ──
    t0 = time.perf_counter()
    try:
        role_confidence = score_roles(normalized.lines, policy)
    except Exception as e:
        logger.error(f"[{run_id}] Role inference failed: {e}")
        role_confidence = RoleConfidence(reason=f"Role inference failed: {e}")
    lines = apply_roles(normalized.lines, role_confidence)
    transcript = render_transcript(lines)
    logger.info(
        f"[{run_id}] Stage 2: roles={role_confidence.verdict.value} "
        f"({len(lines)} lines, {len(normalized.speaker_map)} raw speakers)"
    )
    _timed("Stage 2: Roles", t0)

    # ── STAGE 3: OUTCOME + INFERENCE ──
    t0 = time.perf_counter()
    try:
        outcome = classify_outcome(transcript, policy)
    except Exception as e:
        logger.error(f"[{run_id}] Outcome classification failed: {e}")
        outcome = UNCLEAR_RESULT
    try:
        inferred = infer_business_context(transcript)
    except Exception as e:
        logger.error(f"[{run_id}] Business context inference failed: {e}")
        inferred = InferredBusinessContext()
    logger.info(f"[{run_id}] Stage 3: outcome={outcome.key.value} evidence={outcome.evidence!r}")
    _timed("Stage 3: Outcome", t0)

    # ── STAGE 4: CONTEXT CONFLICT ──
    t0 = time.perf_counter()
    try:
        conflict = detect_context_conflict(user_context, transcript, inferred)
    except Exception as e:
        logger.error(f"[{run_id}] Context conflict check failed: {e}")
        conflict = ContextConflict()
    logger.info(
        f"[{run_id}] Stage 4: conflict={conflict.flagged} missing_info={len(conflict.missing_info)}"
    )
    _timed("Stage 4: Context", t0)

    return CallDiagnostics(
        run_id=run_id,
        enforcer_version=ENFORCER_VERSION,
        user_context=user_context,
        category=category,
        lines=lines,
        transcript=transcript,
        speaker_map=normalized.speaker_map,
        utterance_count=normalized.utterances,
        turn_count=turn_count(transcript),
        role_confidence=role_confidence,
        outcome=outcome,
        call_outcome_banner=outcome_banner(outcome.key),
        inferred=inferred,
        inferred_lines=inferred_lines(inferred),
        context_conflict=conflict,
        derived_from_template=derived_from_template(category),
        stage_times=stage_times,
    )


# ── RUN TITLES / HISTORY ──

_SHORT_CONTEXT_STRIP_RE = re.compile(r"[^\w\s\-/&]+")


def short_context(ctx: str, max_chars: int = 60) -> str:
    s = _SHORT_CONTEXT_STRIP_RE.sub("", clean_text(ctx)).strip()
    if not s:
        return ""
    return s[:max_chars].strip() + "…" if len(s) > max_chars else s


def generate_run_title(user_context: str = "", category: str = "", call_result: str = "") -> str:
    """Short human title, e.g. 'SEO service for beauty ecommerce — Booked Meeting'."""
    ctx = short_context(user_context)
    result = str(call_result.value if isinstance(call_result, CallResult) else call_result or "").strip()
    cat = (category or "").strip()
    informative = result and result != CallResult.CONNECTED_UNCLEAR.value

    if ctx:
        return f"{ctx} — {result}" if informative else ctx
    if cat and informative:
        return f"{cat} — {result}"
    return cat or result or "Call Report"


def normalize_scenario_mismatch(row) -> Optional[bool]:
    """Read the mismatch flag from any historical record shape (None when absent)."""
    if not isinstance(row, dict):
        return None
    for key in ("scenario_mismatch", "mismatch", "scenarioMismatch", "scenario_mismatch_flag"):
        if key in row:
            return bool(row[key])
    for key in ("scenario_mismatch_text", "context_conflict_banner"):
        if key in row:
            return bool(row[key])
    return None


# ── STAGE 5: FINALIZE ──

def finalize_report(
    diagnostics: CallDiagnostics,
    report_text: str,
    proposed_outcome=None,
    script: Optional[str] = None,
    follow_up: Optional[str] = None,
    policy: Optional[EnforcerPolicy] = None,
) -> FinalizedRun:
    """Check the generated report against the transcript before it is surfaced.

    Args:
        diagnostics: Output of analyze_call()
        report_text: Markdown report from the report generator
        proposed_outcome: Outcome label the generator suggested, any spelling
        script: Separately generated script; extracted from the report when None
        follow_up: Generated follow-up message to validate (skipped when None)
        policy: Threshold overrides

    Returns:
        FinalizedRun with the enforced script and the persistence-time outcome
    """
    policy = policy or get_policy()
    run_id = diagnostics.run_id
    report = (report_text or "").strip()

    logger.info(f"[{run_id}] Stage 5: Finalizing report ({len(report)} chars)")
    raw_script = script if script is not None else extract_script_section(report)
    if not raw_script:
        logger.warning(f"[{run_id}] No 45-second script found in report")
    enforced = enforce_script(raw_script, policy)

    outcome = reclassify_outcome(diagnostics.transcript, proposed_outcome, policy)
    call_result = infer_call_result(diagnostics.transcript)
    mismatch_reason = diagnostics.context_conflict.conflict_message or None

    follow_up_check = None
    if follow_up is not None:
        follow_up_check = check_follow_up(follow_up, diagnostics.inferred.prospect_name or "")
        if not follow_up_check.passed:
            logger.warning(f"[{run_id}] Follow-up rejected: {follow_up_check.failures}")

    logger.info(
        f"[{run_id}] Finalized: outcome={outcome.key.value} call_result='{call_result.value}' "
        f"script={enforced.word_count}w pass={enforced.passed}"
    )
    return FinalizedRun(
        run_id=run_id,
        report=report,
        script=enforced,
        outcome=outcome,
        call_result=call_result,
        title=generate_run_title(diagnostics.user_context, diagnostics.category, call_result),
        scenario_mismatch=bool(mismatch_reason),
        mismatch_reason=mismatch_reason,
        follow_up=follow_up_check,
    )
