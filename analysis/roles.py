"""Role inference — upgrade two neutral speakers to You / Prospect, only when confident.

Trust-first: a wrong role label poisons every downstream coaching point, so the
scorer prefers honest neutral labels over a guess. Three gates must pass:

  1. Exactly two neutral speakers.
  2. Diarization sanity: neither speaker dominates (word-share gate). A speaker
     with a sliver of the words is usually noise or a single interjection.
  3. A tie-break: either a clear keyword margin between the speakers, or the
     cold-call convention (the first real speaker opens with a greeting).
"""

import re
from loguru import logger

from config.schemas import CanonicalLine, RoleConfidence, RoleVerdict
from config.settings import EnforcerPolicy, get_policy
from analysis.speakers import (
    PROSPECT,
    YOU,
    compute_speaker_stats,
    is_neutral_label,
    merge_lines,
    word_count,
)


REP_SIGNALS = [
    re.compile(r"\b(?:hi|hello|hey)\b", re.IGNORECASE),
    re.compile(r"\bmy name is\b", re.IGNORECASE),
    re.compile(r"(?<!who )\bis this\b", re.IGNORECASE),
    re.compile(r"\bthis is\b", re.IGNORECASE),
    re.compile(r"\bi['’]?m calling\b|\bcalling (?:from|about)\b", re.IGNORECASE),
    re.compile(r"\breaching out\b", re.IGNORECASE),
    re.compile(r"\bquick (?:one|question|thing)\b", re.IGNORECASE),
    re.compile(r"\bdo you have (?:a moment|a minute|a sec(?:ond)?|\d+ seconds)\b", re.IGNORECASE),
    re.compile(r"\bcan i\b", re.IGNORECASE),
    re.compile(r"\bwould you\b", re.IGNORECASE),
    re.compile(r"\bhow are you\b", re.IGNORECASE),
    re.compile(r"\bnext step\b", re.IGNORECASE),
    re.compile(r"\bbook\b", re.IGNORECASE),
    re.compile(r"\bschedule\b", re.IGNORECASE),
    re.compile(r"\bcalendar\b", re.IGNORECASE),
    re.compile(r"\bwalkthrough\b", re.IGNORECASE),
    re.compile(r"\b(?:10|15|20) minutes\b", re.IGNORECASE),
]

PROSPECT_SIGNALS = [
    re.compile(r"\bwho is this\b", re.IGNORECASE),
    re.compile(r"\bnot interested\b", re.IGNORECASE),
    re.compile(r"\bno thanks\b", re.IGNORECASE),
    re.compile(r"\bstop calling\b", re.IGNORECASE),
    re.compile(r"\bjust email\b", re.IGNORECASE),
    re.compile(r"\bhow much\b", re.IGNORECASE),
    re.compile(r"\btoo expensive\b", re.IGNORECASE),
    re.compile(r"\bwe already\b", re.IGNORECASE),
    re.compile(r"\bwe['’]?re good\b", re.IGNORECASE),
    re.compile(r"\bbusy\b", re.IGNORECASE),
]

OPENER_CUES = re.compile(r"\b(?:hi|hello|hey|my name|this is|calling)\b", re.IGNORECASE)

# Words of the first real turn inspected for an opener cue
_OPENING_WORDS = 30


def _speaker_text(lines: list[CanonicalLine], speaker: str, policy: EnforcerPolicy) -> str:
    turns = [line.text for line in lines if line.speaker == speaker][: policy.role_scan_lines]
    return " ".join(turns)[: policy.role_scan_chars]


def keyword_score(text: str) -> dict:
    """Count distinct rep-style and prospect-style patterns present in text."""
    rep = sum(1 for r in REP_SIGNALS if r.search(text))
    pro = sum(1 for p in PROSPECT_SIGNALS if p.search(text))
    return {"rep": rep, "prospect": pro, "net": rep - pro}


def _cold_call_opener(lines: list[CanonicalLine]) -> str | None:
    """Speaker of the first turn with 2+ words, if that turn opens like a cold call."""
    for line in lines:
        if word_count(line.text) < 2:
            continue
        opening = " ".join(line.text.split(" ")[:_OPENING_WORDS])
        return line.speaker if OPENER_CUES.search(opening) else None
    return None


def score_roles(lines: list[CanonicalLine], policy: EnforcerPolicy | None = None) -> RoleConfidence:
    """Decide whether two neutral speakers can safely become You / Prospect.

    Returns:
        RoleConfidence with verdict:
          - INSUFFICIENT_SIGNAL: not exactly two neutral speakers, or the
            word-share gate failed (diarization_confident=False)
          - NEUTRAL: diarization looks fine but no tie-break held
          - CONFIDENT: role_map filled via 'net_score' or 'cold_call_opener'
    """
    policy = policy or get_policy()
    stats = compute_speaker_stats(lines)
    speakers = list(stats)

    if len(speakers) != 2 or not all(is_neutral_label(s) for s in speakers):
        reason = f"Role inference needs exactly two neutral speakers (found {len(speakers)}: {speakers})."
        logger.debug(reason)
        return RoleConfidence(reason=reason, verdict=RoleVerdict.INSUFFICIENT_SIGNAL)

    # ── Step 1: diarization gate ──
    total_words = sum(s.word_count for s in stats.values())
    shares = {sp: (stats[sp].word_count / total_words if total_words else 0.0) for sp in speakers}
    ranked = sorted(speakers, key=lambda sp: shares[sp], reverse=True)
    top, second = ranked
    top_share, second_share = round(shares[top], 4), round(shares[second], 4)

    diarization_confident = (
        shares[top] <= policy.top_share_max and shares[second] >= policy.second_share_min
    )
    if not diarization_confident:
        reason = (
            f"Word share {top_share:.2f}/{second_share:.2f} outside gate "
            f"(top ≤ {policy.top_share_max}, second ≥ {policy.second_share_min}); "
            f"one side may be noise."
        )
        logger.info(f"Roles left neutral: {reason}")
        return RoleConfidence(
            reason=reason,
            verdict=RoleVerdict.INSUFFICIENT_SIGNAL,
            top_share=top_share,
            second_share=second_share,
        )

    # ── Step 2: keyword scoring ──
    scores = {sp: keyword_score(_speaker_text(lines, sp, policy)) for sp in speakers}
    logger.debug(f"Role keyword scores: {scores}")

    # ── Step 3: tie-break ──
    you = None
    method = None
    if abs(scores[top]["net"] - scores[second]["net"]) >= policy.role_net_margin:
        you = top if scores[top]["net"] > scores[second]["net"] else second
        method = "net_score"
        reason = (
            f"Keyword margin {scores[you]['net']} vs "
            f"{scores[second if you == top else top]['net']} (≥ {policy.role_net_margin})."
        )
    else:
        opener = _cold_call_opener(lines)
        if opener is not None:
            you = opener
            method = "cold_call_opener"
            reason = f"{opener} opened the call with a greeting/introduction."

    if you is None:
        reason = "Speakers look real, but no keyword margin or cold-call opener to tell them apart."
        logger.info(f"Roles left neutral: {reason}")
        return RoleConfidence(
            diarization_confident=True,
            reason=reason,
            verdict=RoleVerdict.NEUTRAL,
            top_share=top_share,
            second_share=second_share,
        )

    prospect = second if you == top else top
    role_map = {you: YOU, prospect: PROSPECT}
    logger.info(f"Roles assigned via {method}: {role_map}")
    return RoleConfidence(
        diarization_confident=True,
        role_confident=True,
        reason=reason,
        verdict=RoleVerdict.CONFIDENT,
        role_map=role_map,
        top_share=top_share,
        second_share=second_share,
        method=method,
    )


def apply_roles(lines: list[CanonicalLine], confidence: RoleConfidence) -> list[CanonicalLine]:
    """Relabel lines with You / Prospect. A non-confident verdict returns lines unchanged."""
    if confidence.verdict != RoleVerdict.CONFIDENT:
        return list(lines)
    return merge_lines(
        (confidence.role_map.get(line.speaker, line.speaker), line.text) for line in lines
    )
