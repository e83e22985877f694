"""Business context checks — declared offer vs. what the transcript actually talks about.

Conservative by construction: a conflict is raised only when both sides carry
signal and they point at opposite offers (website/marketing vs. AI receptionist).
No signal on either side is never a mismatch.
"""

import re
from loguru import logger

from config.schemas import ContextConflict, InferredBusinessContext


# ── OFFER TAXONOMY ──

BOOKING_PATTERNS = [
    r"\bappointments?\b",
    r"\bbook(?:ing)?\s+(?:an\s+)?appointment\b",
    r"\bschedule\s+(?:an\s+)?appointment\b",
    r"\bbook\s+online\b",
    r"\bonline booking\b",
    r"\bbooking link\b",
    r"\breserve\s+an?\s+(?:appointment|spot|time)\b",
]

OFFER_PATTERNS = {
    "website": re.compile(r"\b(?:website|web\s*site|web\s*design|landing\s*page|site\s*rebuild)\b", re.IGNORECASE),
    "seo": re.compile(r"\bseo\b", re.IGNORECASE),
    "marketing": re.compile(r"\b(?:marketing|google\s*ads|facebook\s*ads|ads)\b", re.IGNORECASE),
    "ai_receptionist": re.compile(
        r"\b(?:ai\s*receptionist|receptionist|front\s*desk|answer(?:ing)?\s+(?:the\s+)?(?:calls|phones?)"
        r"|phone\s*calls|missed\s*calls|texts?\s*back)\b",
        re.IGNORECASE,
    ),
    "booking": re.compile("|".join(BOOKING_PATTERNS), re.IGNORECASE),
    "software": re.compile(r"\b(?:software|saas|platform|integration|crm)\b", re.IGNORECASE),
}

WEBSITE_ISH = {"website", "seo", "marketing"}
RECEPTION_ISH = {"ai_receptionist"}

# ── PROSPECT INFERENCE ──

ECOMMERCE_SIGNALS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"\bshopify\b", r"\bwoocommerce\b", r"\bproduct pages?\b",
        r"\bcollection pages?\b", r"\badd to cart\b", r"\bcheckout\b", r"\bcart\b",
    )
]
APPOINTMENT_SIGNALS = [re.compile(p, re.IGNORECASE) for p in BOOKING_PATTERNS]

PROSPECT_TYPES = [
    (re.compile(r"\b(?:barber|barbershop)\b", re.IGNORECASE), "barbershop"),
    (re.compile(r"\b(?:dental|dentist|orthodont\w*)\b", re.IGNORECASE), "dental office"),
    (re.compile(r"\b(?:roof|roofing|roofer|roofers)\b", re.IGNORECASE), "roofing company"),
    (re.compile(r"\b(?:restaurant|diner|cafe|coffee\s+shop)\b", re.IGNORECASE), "restaurant / cafe"),
    (re.compile(r"\b(?:gym|fitness)\b", re.IGNORECASE), "gym / fitness business"),
    (re.compile(r"\b(?:real\s+estate|realtor|brokerage)\b", re.IGNORECASE), "real estate"),
]

US_STATES = (
    "Florida|Texas|California|New York|Virginia|Georgia|North Carolina|"
    "South Carolina|Illinois|Ohio|Pennsylvania"
)
_LOCATION_ABBR_RE = re.compile(r"\bin\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*),\s*([A-Z]{2})\b")
_LOCATION_STATE_RE = re.compile(rf"\bin\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*),\s*({US_STATES})\b")
_PROSPECT_NAME_RE = re.compile(r"\b(?:at|with)\s+([A-Z][A-Za-z0-9&' -]{2,45})(?=[?.!,\n]|$)")

# Words in the user's own context that already say who was called
_USER_PROSPECT_HINT_RE = re.compile(
    r"barber|dent|roof|restaurant|gym|ecom|shopify|local business|company|shop|office",
    re.IGNORECASE,
)

MISSING_OFFER_PROMPT = "What are you selling? (one sentence)"
MISSING_PROSPECT_PROMPT = "Who did you call? (industry in a few words)"

WEBSITE_CONFLICT_MESSAGE = (
    "⚠ CONTEXT CONFLICT: Your context is website/marketing, but transcript suggests "
    "AI receptionist / phone-handling. Rewrite the context in one sentence if needed."
)
RECEPTION_CONFLICT_MESSAGE = (
    "⚠ CONTEXT CONFLICT: Your context suggests AI receptionist, but transcript looks like "
    "website/marketing. Rewrite the context in one sentence if needed."
)


def extract_offer_keywords(text: str) -> list[str]:
    """Offer categories mentioned in text, in taxonomy order."""
    text = text or ""
    return [key for key, pattern in OFFER_PATTERNS.items() if pattern.search(text)]


def _infer_prospect_type(text: str) -> str | None:
    ecommerce = sum(1 for p in ECOMMERCE_SIGNALS if p.search(text))
    appointment = sum(1 for p in APPOINTMENT_SIGNALS if p.search(text))

    if ecommerce >= 1 and ecommerce > appointment:
        return "ecommerce business"
    if appointment >= 1 and appointment > ecommerce:
        return "appointment-based business"
    for pattern, label in PROSPECT_TYPES:
        if pattern.search(text):
            return label
    if ecommerce >= 1:
        return "ecommerce business"
    return None


def _infer_location(text: str) -> str | None:
    m = _LOCATION_ABBR_RE.search(text) or _LOCATION_STATE_RE.search(text)
    return f"{m.group(1)}, {m.group(2)}" if m else None


def _infer_prospect_name(text: str) -> str | None:
    m = _PROSPECT_NAME_RE.search(text)
    if not m:
        return None
    candidate = m.group(1).strip()
    return candidate if 3 <= len(candidate) <= 45 else None


def infer_business_context(transcript: str) -> InferredBusinessContext:
    """Read offer keywords, prospect type/name and location out of the transcript."""
    text = transcript or ""
    inferred = InferredBusinessContext(
        offer_keywords=extract_offer_keywords(text),
        prospect_type=_infer_prospect_type(text),
        prospect_name=_infer_prospect_name(text),
        location=_infer_location(text),
    )
    logger.debug(f"Inferred business context: {inferred.model_dump()}")
    return inferred


def inferred_lines(inferred: InferredBusinessContext) -> list[str]:
    out = []
    if inferred.prospect_name:
        out.append(f"Prospect name: {inferred.prospect_name}")
    if inferred.prospect_type:
        out.append(f"Prospect type: {inferred.prospect_type}")
    if inferred.location:
        out.append(f"Location: {inferred.location}")
    if inferred.offer_keywords:
        out.append(f"Offer keywords: {', '.join(inferred.offer_keywords)}")
    return out


def _conflict_message(user_hits: list[str], transcript_hits: list[str]) -> str:
    if not user_hits or not transcript_hits:
        return ""

    user, tr = set(user_hits), set(transcript_hits)
    if user & WEBSITE_ISH and tr & RECEPTION_ISH and not tr & WEBSITE_ISH:
        return WEBSITE_CONFLICT_MESSAGE
    if user & RECEPTION_ISH and tr & WEBSITE_ISH and not tr & RECEPTION_ISH:
        return RECEPTION_CONFLICT_MESSAGE
    return ""


def _missing_info(user_context: str, user_hits: list[str], inferred: InferredBusinessContext) -> list[str]:
    missing = []
    if not user_hits and not inferred.offer_keywords:
        missing.append(MISSING_OFFER_PROMPT)
    if not _USER_PROSPECT_HINT_RE.search(user_context) and not (
        inferred.prospect_type or inferred.prospect_name
    ):
        missing.append(MISSING_PROSPECT_PROMPT)
    return missing[:2]


def detect_context_conflict(
    user_context: str,
    transcript: str,
    inferred: InferredBusinessContext | None = None,
) -> ContextConflict:
    """Compare the declared offer with the transcript and list missing basics.

    Args:
        user_context: Free-text description the user typed ("I sell SEO to dentists")
        transcript: Canonical transcript text
        inferred: Pre-computed transcript inference (recomputed when None)

    Returns:
        ContextConflict with a banner message (empty when no conflict) and at
        most two missing-information prompts.
    """
    user_context = user_context or ""
    inferred = inferred or infer_business_context(transcript)
    user_hits = extract_offer_keywords(user_context)

    message = _conflict_message(user_hits, inferred.offer_keywords)
    if message:
        logger.info(f"Context conflict: user={user_hits} transcript={inferred.offer_keywords}")

    return ContextConflict(
        conflict_message=message,
        missing_info=_missing_info(user_context, user_hits, inferred),
    )
