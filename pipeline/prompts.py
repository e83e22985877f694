"""Report prompt assembly — the messages handed to the report-generation collaborator.

The LLM call itself lives outside this repository. What lives here is the part
that must stay deterministic: which diagnostics the model sees, how the
category tag nudges wording, and how much transcript fits in the prompt.
"""

from config.schemas import CallDiagnostics


# Category tag → style nudge. Never overrides transcript evidence.
TEMPLATE_NUDGES = {
    "LOCAL_SERVICE": {
        "title": "Local service → local business",
        "notes": (
            "Use lead/call language. Anchor to service area, missed calls, maps ranking, reviews, "
            "and simple next steps (text an example, quick audit). Avoid ecom/CAC jargon."
        ),
        "example_phrases": ["service area pages", "calls/leads", "Google Maps", "reviews", "estimate requests"],
    },
    "B2B_SERVICE": {
        "title": "B2B service / software",
        "notes": (
            "Use ROI/time-saved/pipeline language. Focus on qualifying decision-maker, current "
            "tool/process, measurable outcome, and low-friction next step (10-min walkthrough)."
        ),
        "example_phrases": ["pipeline", "ROI", "time saved", "team workflow", "demo"],
    },
    "ECOM_MARKETING": {
        "title": "Ecommerce / marketing",
        "notes": (
            "Use CAC/ROAS/product/collection page language. Tie to revenue, buyer keywords, "
            "technical fixes, internal linking, and proof-based audit."
        ),
        "example_phrases": ["CAC", "ROAS", "collection pages", "product pages", "buyer keywords"],
    },
    "HOME_SERVICES": {
        "title": "Home services",
        "notes": (
            "Use homeowner-intent keywords, emergency searches, service areas, and calls booked. "
            "Avoid ecom framing unless transcript indicates ecom."
        ),
        "example_phrases": ["emergency repair", "service areas", "calls booked", "local keywords"],
    },
    "APPT_BASED": {
        "title": "Appointment-based business",
        "notes": (
            "Use appointment/booking language only when relevant. Focus on bookings, no-shows, "
            "conversion from mobile, and frictionless scheduling."
        ),
        "example_phrases": ["appointments", "booking link", "schedule online", "no-shows"],
    },
    "OTHER": {
        "title": "Other",
        "notes": "Keep examples generic: permission opener, value anchor, one proof point, one low-commitment next step.",
        "example_phrases": ["quick question", "proof", "audit", "10 minutes"],
    },
}

AUTO_NUDGE = {"title": "Auto (no template)", "notes": "(none)", "example_phrases": []}

REPORT_SECTIONS = [
    "## 0) Context Check",
    "## 1) Scorecard (0-10)",
    "## 2) What To Fix First (Top 3)",
    "## 3) Best Objection Responses (word-for-word)",
    "## 4) Rewrite Pack (10 lines)",
    "## 5) 45-Second Script (single best version)",
]

MAX_CONTEXT_CHARS = 600
MAX_TRANSCRIPT_CHARS = 7000


def template_nudge(category: str) -> dict:
    return TEMPLATE_NUDGES.get((category or "").strip(), AUTO_NUDGE)


def derived_from_template(category: str) -> str:
    nudge = template_nudge(category)
    if nudge["notes"] == "(none)":
        return "(none)"
    return f"{nudge['title']}: {nudge['notes']}"


def clamp(s: str, max_chars: int) -> str:
    t = s or ""
    return t[:max_chars] + "…" if len(t) > max_chars else t


def build_report_messages(diagnostics: CallDiagnostics, script_max_words: int = 90) -> list[dict]:
    """System + user chat messages for the coaching report."""
    nudge = template_nudge(diagnostics.category)

    system = [
        "You are Calibrate, a brutally practical cold-call coach.",
        "You generate a coaching report and a compliant 45-second script.",
        "Do NOT ask the user questions in the report. If info is missing, write generic but actionable coaching.",
        "Context + transcript are the truth. The template only nudges examples/wording; never contradict transcript.",
        "If call outcome is VOICEMAIL / EARLY_EXIT / HOSTILE, explicitly state scoring is limited and why.",
        f"Keep the 45-second script under {script_max_words} words.",
        "",
        "Scenario template (nudge):",
        f"- Title: {nudge['title']}",
        f"- Notes: {nudge['notes']}",
    ]
    if nudge["example_phrases"]:
        system.append(f"- Example phrases: {', '.join(nudge['example_phrases'])}")
    system += ["", "Output format (markdown, exactly these sections):", *REPORT_SECTIONS]

    inferred = diagnostics.inferred_lines
    outcome = diagnostics.outcome
    user = [
        "User context:",
        clamp(diagnostics.user_context, MAX_CONTEXT_CHARS),
        "",
        "Inferred from transcript:",
        "\n".join(f"- {x}" for x in inferred) if inferred else "- (none)",
        "",
        f"Call outcome: {outcome.key.value} ({outcome.reason})",
        "",
        "Transcript:",
        clamp(diagnostics.transcript, MAX_TRANSCRIPT_CHARS),
    ]

    return [
        {"role": "system", "content": "\n".join(system)},
        {"role": "user", "content": "\n".join(user)},
    ]
