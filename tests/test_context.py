"""Tests for offer keyword extraction, business inference and context conflicts."""

from analysis.context import (
    MISSING_OFFER_PROMPT,
    MISSING_PROSPECT_PROMPT,
    RECEPTION_CONFLICT_MESSAGE,
    WEBSITE_CONFLICT_MESSAGE,
    detect_context_conflict,
    extract_offer_keywords,
    infer_business_context,
    inferred_lines,
)


class TestOfferKeywords:
    def test_taxonomy_order(self):
        hits = extract_offer_keywords("We do SEO and a new website, plus an AI receptionist")
        assert hits == ["website", "seo", "ai_receptionist"]

    def test_receptionist_phrases(self):
        assert extract_offer_keywords("it texts back missed calls") == ["ai_receptionist"]

    def test_no_hits(self):
        assert extract_offer_keywords("hello, how are you today") == []


class TestContextConflict:
    def test_seo_context_vs_receptionist_transcript(self):
        result = detect_context_conflict(
            "I sell SEO services",
            "You: We set up an ai receptionist that texts back missed calls.\nProspect: Huh.",
        )
        assert result.flagged is True
        assert result.conflict_message == WEBSITE_CONFLICT_MESSAGE

    def test_no_transcript_signal_no_conflict(self):
        result = detect_context_conflict(
            "I sell SEO services",
            "You: Hi, this is Sam.\nProspect: Who is this?",
        )
        assert result.flagged is False

    def test_mixed_transcript_no_conflict(self):
        result = detect_context_conflict(
            "I sell SEO services",
            "You: we handle your website and the receptionist side too",
        )
        assert result.flagged is False

    def test_receptionist_context_vs_marketing_transcript(self):
        result = detect_context_conflict(
            "AI receptionist for dentists",
            "You: we run google ads and rebuild your website",
        )
        assert result.conflict_message == RECEPTION_CONFLICT_MESSAGE

    def test_empty_context_never_conflicts(self):
        result = detect_context_conflict("", "You: our ai receptionist answers the phones")
        assert result.flagged is False


class TestMissingInfo:
    def test_both_prompts_when_nothing_known(self):
        result = detect_context_conflict("", "You: Hi.\nProspect: Hello?")
        assert result.missing_info == [MISSING_OFFER_PROMPT, MISSING_PROSPECT_PROMPT]

    def test_prospect_hint_in_context(self):
        result = detect_context_conflict("SEO for a roofing company", "You: Hi.")
        assert result.missing_info == []

    def test_offer_inferred_from_transcript(self):
        result = detect_context_conflict("", "You: I build a website for the barbershop.")
        assert MISSING_OFFER_PROMPT not in result.missing_info
        assert MISSING_PROSPECT_PROMPT not in result.missing_info

    def test_capped_at_two(self):
        result = detect_context_conflict("", "")
        assert len(result.missing_info) <= 2


class TestInference:
    def test_ecommerce_prospect(self):
        inferred = infer_business_context("Prospect: our Shopify checkout and product pages are slow")
        assert inferred.prospect_type == "ecommerce business"

    def test_appointment_prospect(self):
        inferred = infer_business_context("Prospect: people book online for an appointment")
        assert inferred.prospect_type == "appointment-based business"

    def test_industry_fallback(self):
        inferred = infer_business_context("You: I saw your dental practice listing")
        assert inferred.prospect_type == "dental office"

    def test_location(self):
        inferred = infer_business_context("Prospect: we're a small shop in Tampa, FL")
        assert inferred.location == "Tampa, FL"

    def test_location_full_state(self):
        inferred = infer_business_context("Prospect: we're in Austin, Texas")
        assert inferred.location == "Austin, Texas"

    def test_prospect_name(self):
        inferred = infer_business_context("You: Am I speaking with Sunrise Dental?")
        assert inferred.prospect_name == "Sunrise Dental"

    def test_nothing_to_infer(self):
        inferred = infer_business_context("")
        assert inferred.offer_keywords == []
        assert inferred.prospect_type is None
        assert inferred.location is None

    def test_inferred_lines(self):
        inferred = infer_business_context("You: Am I speaking with Sunrise Dental? We do SEO.")
        lines = inferred_lines(inferred)
        assert "Prospect name: Sunrise Dental" in lines
        assert "Prospect type: dental office" in lines
        assert "Offer keywords: seo" in lines
