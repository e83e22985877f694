"""Tests for JSONL / CSV exports of processed runs."""

import json

import pytest
from config.settings import EnforcerPolicy
from pipeline.orchestrator import analyze_call, finalize_report
from pipeline.output_generator import HAS_PANDAS, build_run_record, export_to_csv, export_to_jsonl


POLICY = EnforcerPolicy()
TRANSCRIPT = "You: I'll send a zoom link for Tuesday at 2pm.\nProspect: Sounds good."
REPORT = "## 5) 45-Second Script (single best version)\nHi Dana, quick one."


@pytest.fixture
def records():
    d = analyze_call(transcript_text=TRANSCRIPT, user_context="SEO for dentists", run_id="r1", policy=POLICY)
    run = finalize_report(d, REPORT, policy=POLICY)
    diagnostics_only = analyze_call(transcript_text="You: hi", run_id="r2", policy=POLICY)
    return [build_run_record(d, run), build_run_record(diagnostics_only)]


class TestRunRecord:
    def test_shape(self, records):
        assert set(records[0]) == {"diagnostics", "finalized"}
        assert set(records[1]) == {"diagnostics"}

    def test_script_pass_uses_alias(self, records):
        assert records[0]["finalized"]["script"]["pass"] is True

    def test_enums_serialized_as_values(self, records):
        assert records[0]["finalized"]["outcome"]["key"] == "BOOKED_MEETING"
        assert records[0]["diagnostics"]["role_confidence"]["verdict"] == "insufficient_signal"


class TestExports:
    def test_jsonl(self, records, tmp_path):
        out = tmp_path / "nested" / "runs.jsonl"
        export_to_jsonl(records, str(out))
        lines = out.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["diagnostics"]["run_id"] == "r1"

    @pytest.mark.skipif(not HAS_PANDAS, reason="pandas not installed")
    def test_csv(self, records, tmp_path):
        import pandas as pd

        out = tmp_path / "runs.csv"
        export_to_csv(records, str(out))
        df = pd.read_csv(out)
        assert list(df["run_id"]) == ["r1", "r2"]
        assert df.loc[0, "final_outcome"] == "BOOKED_MEETING"
        assert df.loc[0, "title"] == "SEO for dentists — Booked Meeting"
        assert pd.isna(df.loc[1, "final_outcome"])
