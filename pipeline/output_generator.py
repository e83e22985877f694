"""Output Generation — persistence-friendly exports of enforcer results (JSONL, CSV).

Exports processed runs to:
- JSONL: one record per line (full diagnostics + finalized report)
- CSV:   flat summary per run (for spreadsheets / calibration review)

Accepts CallDiagnostics / FinalizedRun objects and raw dicts (from loaded JSON files).
"""

import json
from pathlib import Path
from loguru import logger

try:
    import pandas as pd
    HAS_PANDAS = True
except ImportError:
    HAS_PANDAS = False
    logger.warning("pandas not installed — CSV export disabled")

from config.schemas import CallDiagnostics, FinalizedRun


def _to_dict(record) -> dict:
    """Convert a pydantic record (or dict) to a plain dict."""
    if isinstance(record, (CallDiagnostics, FinalizedRun)):
        return record.model_dump(mode="json", by_alias=True)
    return record


def build_run_record(diagnostics: CallDiagnostics, finalized: FinalizedRun | None = None) -> dict:
    """Single persistence row: diagnostics plus (optionally) the finalized report."""
    row = {"diagnostics": _to_dict(diagnostics)}
    if finalized is not None:
        row["finalized"] = _to_dict(finalized)
    return row


def _flatten_record(r: dict) -> dict:
    """Flatten one run record (as produced by build_run_record) to a CSV row."""
    d = r.get("diagnostics", r)
    f = r.get("finalized") or {}
    roles = d.get("role_confidence", {})
    outcome = d.get("outcome", {})
    conflict = d.get("context_conflict", {})
    script = f.get("script", {})
    final_outcome = f.get("outcome", {})

    return {
        "run_id": d.get("run_id"),
        "enforcer_version": d.get("enforcer_version"),
        "category": d.get("category"),
        "user_context": d.get("user_context"),
        "turn_count": d.get("turn_count"),
        "utterance_count": d.get("utterance_count"),
        "num_speakers": len(d.get("speaker_map", {})),
        "role_verdict": roles.get("verdict"),
        "diarization_confident": roles.get("diarization_confident"),
        "role_confident": roles.get("role_confident"),
        "role_method": roles.get("method"),
        "live_outcome": outcome.get("key"),
        "live_outcome_evidence": outcome.get("evidence"),
        "offer_keywords": ";".join(d.get("inferred", {}).get("offer_keywords", [])),
        "context_conflict": bool(conflict.get("conflict_message")),
        "missing_info": ";".join(conflict.get("missing_info", [])),
        "final_outcome": final_outcome.get("key"),
        "final_outcome_evidence": final_outcome.get("evidence"),
        "call_result": f.get("call_result"),
        "title": f.get("title"),
        "script_words": script.get("word_count"),
        "script_pass": script.get("pass"),
        "follow_up_pass": (f.get("follow_up") or {}).get("passed"),
    }


def export_to_jsonl(records: list, output_path: str) -> str:
    """Export run records as JSON Lines (one record per line)."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        for record in records:
            f.write(json.dumps(_to_dict(record), default=str) + "\n")
    logger.info(f"JSONL exported: {output_path} ({len(records)} records)")
    return output_path


def export_to_csv(records: list, output_path: str) -> str:
    """Export run records as a flat CSV summary."""
    if not HAS_PANDAS:
        logger.error("pandas required for CSV export")
        return ""
    rows = [_flatten_record(_to_dict(r)) for r in records]
    df = pd.DataFrame(rows)
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.info(f"CSV exported: {output_path} ({len(rows)} runs)")
    return output_path
