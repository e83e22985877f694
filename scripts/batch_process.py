"""Batch run the enforcer over a directory of saved call runs.

Each input is a JSON file with:
    {"utterances": [{"speaker": "A", "text": "..."}] | "transcript": "Rep: ... Prospect: ...",
     "context": "...", "category": "LOCAL_SERVICE",
     "report": "## 0) Context Check ...", "outcome": "BOOKED",
     "follow_up": "Hi Dana, ..."}   # report/outcome/follow_up optional

Usage:
    python scripts/batch_process.py [--data-dir data/runs] [--output-dir data/processed/batch_results]
"""

import sys
import json
import time
import argparse
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv()

from loguru import logger
from pipeline.orchestrator import analyze_call, finalize_report
from pipeline.output_generator import build_run_record, export_to_csv, export_to_jsonl


def find_run_files(data_dir: str) -> list[Path]:
    """All *.json run files under data_dir, sorted for stable output."""
    base = Path(data_dir)
    if not base.exists():
        logger.error(f"Data directory not found: {base}")
        return []
    return sorted(p for p in base.rglob("*.json") if p.is_file())


def process_run_file(path: Path) -> dict:
    with open(path) as f:
        payload = json.load(f)

    diagnostics = analyze_call(
        utterances=payload.get("utterances"),
        transcript_text=payload.get("transcript"),
        user_context=payload.get("context", ""),
        category=payload.get("category", ""),
        run_id=path.stem,
    )
    finalized = None
    if payload.get("report"):
        finalized = finalize_report(
            diagnostics,
            payload["report"],
            proposed_outcome=payload.get("outcome"),
            follow_up=payload.get("follow_up"),
        )
    return build_run_record(diagnostics, finalized)


def main():
    parser = argparse.ArgumentParser(description="Batch run the call enforcer over saved runs")
    parser.add_argument("--data-dir", default="data/runs", help="Directory of run JSON files")
    parser.add_argument("--output-dir", default="data/processed/batch_results", help="Output directory")
    parser.add_argument("--log-level", default="INFO", help="loguru level (DEBUG shows rule matches)")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    run_files = find_run_files(args.data_dir)
    logger.info(f"Found {len(run_files)} run files to process")

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    records = []
    failures = []
    total_start = time.time()

    for i, path in enumerate(run_files):
        logger.info(f"Processing {i+1}/{len(run_files)}: {path.name}")
        try:
            records.append(process_run_file(path))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"FAILED {path.name}: {e}")
            failures.append({"file": path.name, "error": str(e)})

    total_elapsed = time.time() - total_start

    export_to_jsonl(records, str(output_dir / "runs.jsonl"))
    export_to_csv(records, str(output_dir / "runs.csv"))
    if failures:
        with open(output_dir / "failures.json", "w") as f:
            json.dump(failures, f, indent=2)

    print(f"\n{'='*80}")
    print(f"BATCH COMPLETE — {len(records)} runs in {total_elapsed:.1f}s")
    print(f"{'='*80}")
    print(f"{'Run':<30} {'Roles':>20} {'Outcome':>12} {'Conflict':>9}")
    print("-" * 80)
    for r in records:
        d = r["diagnostics"]
        print(
            f"{d['run_id'][:29]:<30} {d['role_confidence']['verdict']:>20} "
            f"{d['outcome']['key']:>12} {str(bool(d['context_conflict']['conflict_message'])):>9}"
        )

    print(f"\nResults saved to: {output_dir}")
    print(f"Success: {len(records)}/{len(run_files)}")


if __name__ == "__main__":
    main()
