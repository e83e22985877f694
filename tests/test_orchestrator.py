"""End-to-end tests for analyze_call / finalize_report and the run-history helpers."""

import pytest
from config.schemas import CallResult, OutcomeKey, RoleVerdict
from config.settings import EnforcerPolicy
from analysis.context import WEBSITE_CONFLICT_MESSAGE
from pipeline.orchestrator import (
    analyze_call,
    finalize_report,
    generate_run_title,
    normalize_scenario_mismatch,
    turn_count,
)
from pipeline.prompts import AUTO_NUDGE, build_report_messages, template_nudge


POLICY = EnforcerPolicy()

COLD_CALL = [
    {"speaker": "spk_0", "text": "Hi, my name is Sam, I'm calling about your website."},
    {"speaker": "spk_0", "text": "Can I book a quick walkthrough?"},
    {"speaker": "spk_1", "text": "Who is this? We already have someone, not interested, we're busy."},
]

BOOKED_TEXT = "You: I'll send a zoom link for Tuesday at 2pm.\nProspect: Sounds good."


class TestAnalyzeCall:
    def test_utterances_path(self):
        d = analyze_call(utterances=COLD_CALL, user_context="I sell SEO services", run_id="t1", policy=POLICY)
        assert d.run_id == "t1"
        assert d.utterance_count == 3
        assert d.speaker_map == {"spk_0": "Speaker A", "spk_1": "Speaker B"}
        assert d.role_confidence.verdict == RoleVerdict.CONFIDENT
        assert d.transcript.startswith("You: Hi, my name is Sam")
        assert d.turn_count == 2
        assert d.outcome.key == OutcomeKey.EARLY_EXIT
        assert "EARLY EXIT" in d.call_outcome_banner
        assert d.inferred.offer_keywords == ["website"]
        assert d.context_conflict.flagged is False
        assert len(d.stage_times) == 4

    def test_text_path_keeps_semantic_labels(self):
        d = analyze_call(transcript_text="Rep: hi\nProspect: hello\nRep: got a minute?", policy=POLICY)
        assert [l.speaker for l in d.lines] == ["You", "Prospect", "You"]
        assert d.role_confidence.verdict == RoleVerdict.INSUFFICIENT_SIGNAL
        assert d.outcome.key == OutcomeKey.CONNECTED

    def test_empty_input(self):
        d = analyze_call(policy=POLICY)
        assert d.lines == []
        assert d.outcome.key == OutcomeKey.UNCLEAR
        assert d.role_confidence.diarization_confident is False

    def test_generates_run_id(self):
        assert analyze_call(transcript_text="You: hi", policy=POLICY).run_id

    def test_category_nudge_recorded(self):
        d = analyze_call(transcript_text="You: hi", category="LOCAL_SERVICE", policy=POLICY)
        assert d.derived_from_template.startswith("Local service")
        assert analyze_call(transcript_text="You: hi", policy=POLICY).derived_from_template == "(none)"

    def test_failing_stage_falls_back(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("regex exploded")

        monkeypatch.setattr("pipeline.orchestrator.classify_outcome", boom)
        d = analyze_call(transcript_text=BOOKED_TEXT, policy=POLICY)
        assert d.outcome.key == OutcomeKey.UNCLEAR


class TestFinalizeReport:
    REPORT = "## 4) Rewrite Pack (10 lines)\n- ...\n## 5) 45-Second Script (single best version)\nHi Dana quick one"

    def test_booked_meeting(self):
        d = analyze_call(transcript_text=BOOKED_TEXT, user_context="SEO for dentists", policy=POLICY)
        run = finalize_report(d, self.REPORT, proposed_outcome="rejected", policy=POLICY)
        assert run.outcome.key == OutcomeKey.BOOKED_MEETING
        assert run.call_result == CallResult.BOOKED_MEETING
        assert run.script.text == "Hi Dana quick one?"
        assert run.script.passed is True
        assert run.title == "SEO for dentists — Booked Meeting"
        assert run.scenario_mismatch is False
        assert run.mismatch_reason is None

    def test_explicit_script_wins_over_report(self):
        d = analyze_call(transcript_text=BOOKED_TEXT, policy=POLICY)
        run = finalize_report(d, self.REPORT, script="Separate script.", policy=POLICY)
        assert run.script.text == "Separate script."

    def test_missing_script_fails_contract(self):
        d = analyze_call(transcript_text=BOOKED_TEXT, policy=POLICY)
        run = finalize_report(d, "## 1) Scorecard\n7/10", policy=POLICY)
        assert run.script.text == ""
        assert run.script.passed is False

    def test_follow_up_checked_against_prospect_name(self):
        d = analyze_call(
            transcript_text="You: Am I speaking with Sunrise Dental?\nProspect: Yes.",
            policy=POLICY,
        )
        good = finalize_report(
            d, self.REPORT, follow_up="Thanks! Could Sunrise Dental do a quick call Thursday?", policy=POLICY
        )
        assert good.follow_up.passed is True
        bad = finalize_report(d, self.REPORT, follow_up="Hi [Name], thanks for the chat.", policy=POLICY)
        assert "placeholder" in bad.follow_up.failures
        assert "missing_entity_reference" in bad.follow_up.failures

    def test_follow_up_skipped_when_absent(self):
        d = analyze_call(transcript_text=BOOKED_TEXT, policy=POLICY)
        assert finalize_report(d, self.REPORT, policy=POLICY).follow_up is None

    def test_context_conflict_carried(self):
        d = analyze_call(
            transcript_text="You: our ai receptionist texts back missed calls\nProspect: hm",
            user_context="I sell SEO services",
            policy=POLICY,
        )
        run = finalize_report(d, self.REPORT, policy=POLICY)
        assert run.scenario_mismatch is True
        assert run.mismatch_reason == WEBSITE_CONFLICT_MESSAGE


class TestRunHistoryHelpers:
    def test_title_fallbacks(self):
        assert generate_run_title() == "Call Report"
        assert generate_run_title("", "LOCAL_SERVICE", CallResult.REJECTED) == "LOCAL_SERVICE — Rejected"
        assert generate_run_title("Roofing leads", "", CallResult.CONNECTED_UNCLEAR) == "Roofing leads"

    def test_title_truncates_context(self):
        title = generate_run_title("x" * 100, "", "Rejected")
        assert title.startswith("x" * 60 + "…")

    @pytest.mark.parametrize("row,expected", [
        ({"scenario_mismatch": 1}, True),
        ({"scenarioMismatch": False}, False),
        ({"context_conflict_banner": "⚠ CONTEXT CONFLICT"}, True),
        ({"scenario_mismatch_text": ""}, False),
        ({}, None),
        ("not a row", None),
    ])
    def test_normalize_scenario_mismatch(self, row, expected):
        assert normalize_scenario_mismatch(row) is expected

    def test_turn_count(self):
        assert turn_count("You: hi\nProspect: hello\nSpeaker A: hm") == 3
        assert turn_count("line one\n\nline two") == 2
        assert turn_count("") == 0


class TestReportMessages:
    def test_messages_carry_diagnostics(self):
        d = analyze_call(utterances=COLD_CALL, user_context="I sell SEO services", category="B2B_SERVICE", policy=POLICY)
        system, user = build_report_messages(d, script_max_words=90)
        assert system["role"] == "system"
        assert "under 90 words" in system["content"]
        assert "B2B service / software" in system["content"]
        assert "Call outcome: EARLY_EXIT" in user["content"]
        assert "- Offer keywords: website" in user["content"]

    def test_unknown_category_uses_auto(self):
        assert template_nudge("SOMETHING") is AUTO_NUDGE
