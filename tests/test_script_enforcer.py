"""Tests for the 45-second script contract."""

from config.settings import EnforcerPolicy
from analysis.script_enforcer import enforce_script, extract_script_section, slice_words


POLICY = EnforcerPolicy(script_max_words=90)


class TestEnforceScript:
    def test_long_script_truncated_to_word_limit(self):
        script = " ".join(f"w{i}" for i in range(120))
        result = enforce_script(script, POLICY)
        assert result.word_count == 90
        assert result.text.endswith("?")
        assert result.passed is True

    def test_short_script_untouched(self):
        result = enforce_script("Hi Dana, quick one about your booking page.", POLICY)
        assert result.text == "Hi Dana, quick one about your booking page."
        assert result.passed is True

    def test_missing_terminal_punctuation_added(self):
        result = enforce_script("Worth a 10 minute look next week", POLICY)
        assert result.text == "Worth a 10 minute look next week?"

    def test_empty_stays_empty(self):
        result = enforce_script("", POLICY)
        assert result.text == ""
        assert result.word_count == 0
        assert result.passed is False

    def test_serializes_pass_alias(self):
        dumped = enforce_script("Short and done.", POLICY).model_dump(by_alias=True)
        assert dumped["pass"] is True

    def test_truncation_on_comma_drops_separator(self):
        result = enforce_script("one two, three four", POLICY.model_copy(update={"script_max_words": 2}))
        assert result.text == "one two?"

    def test_trailing_colon_replaced(self):
        assert enforce_script("Here is the idea:", POLICY).text == "Here is the idea?"

    def test_word_limit_is_policy(self):
        result = enforce_script("one two three four five", POLICY.model_copy(update={"script_max_words": 3}))
        assert result.text == "one two three?"


class TestSliceWords:
    def test_repairs_space_before_punctuation(self):
        assert slice_words("hello , there friend ! more words", 4) == "hello, there friend"

    def test_under_limit_returns_stripped(self):
        assert slice_words("  hi there  ", 5) == "hi there"


class TestExtractScriptSection:
    def test_extracts_body(self):
        report = (
            "## 4) Next Call Plan\n- open softer\n\n"
            "## 5) 45-Second Script (under 90 words)\n> Hi Dana, it's Sam from Brightline. Got a minute?"
        )
        assert extract_script_section(report) == "Hi Dana, it's Sam from Brightline. Got a minute?"

    def test_missing_section(self):
        assert extract_script_section("## 1) Summary\nNothing here") == ""
