"""Speaker canonicalization — stable labels for diarized or inline-labeled transcripts.

Two entry points produce the same CanonicalLine shape:
  - normalize_utterances(): diarizer output (raw speaker ids) → "Speaker A", "Speaker B", ...
    in order of first appearance. Never guesses roles; that is roles.py's job.
  - parse_labeled_text(): a text blob with inline markers ("Rep:", "Prospect:",
    "Speaker B:") → You / Prospect / neutral labels, unknown lines kept as "Other".

Consecutive turns by the same label are always merged, so downstream stages can
treat each line as one conversational turn.
"""

import re
from loguru import logger

from config.schemas import CanonicalLine, NormalizedTranscript, SpeakerStats, Utterance


SPEAKER_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

YOU = "You"
PROSPECT = "Prospect"
OTHER = "Other"

# Inline marker → canonical label (text-blob path)
_LABEL_ALIASES = {
    "prospect": PROSPECT,
    "customer": PROSPECT,
    "rep": YOU,
    "caller": YOU,
    "agent": YOU,
    "you": YOU,
    "other": OTHER,
}

# Upstream markers split anywhere in the text. You/Other are canonical output
# labels and only count at the start of a line.
_INLINE_TOKEN = r"speaker\s*[a-z0-9]{1,2}|prospect|customer|rep|caller|agent"
_LABEL_TOKEN = rf"{_INLINE_TOKEN}|you|other"
_INLINE_LABEL_RE = re.compile(rf"\b(?:{_INLINE_TOKEN})\s*:", re.IGNORECASE)
_LEADING_LABEL_RE = re.compile(rf"^({_LABEL_TOKEN})\s*:\s*(.*)$", re.IGNORECASE)
_NEUTRAL_RE = re.compile(r"^speaker\s*([a-z0-9]{1,2})$", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(s) -> str:
    """Collapse whitespace runs and trim. None → ''."""
    if s is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(s)).strip()


def word_count(s) -> int:
    t = clean_text(s)
    return len(t.split(" ")) if t else 0


def normalize_speaker_key(raw) -> str:
    """Case-insensitive dedup key for a raw diarizer speaker id."""
    if raw is None:
        return "unknown"
    key = str(raw).strip().lower()
    return key or "unknown"


def neutral_label(index: int) -> str:
    if index < len(SPEAKER_LETTERS):
        return f"Speaker {SPEAKER_LETTERS[index]}"
    return f"Speaker {index + 1}"


def is_neutral_label(label: str) -> bool:
    return bool(label) and label.startswith("Speaker ")


def canonical_label(token: str) -> str:
    """Map an inline marker ("rep", "Speaker b", "CUSTOMER") to its canonical label."""
    token = clean_text(token)
    neutral = _NEUTRAL_RE.match(token)
    if neutral:
        return f"Speaker {neutral.group(1).upper()}"
    return _LABEL_ALIASES.get(token.lower(), OTHER)


def merge_lines(entries) -> list[CanonicalLine]:
    """Merge adjacent (label, text) pairs that share a label, joined by one space."""
    merged: list[list[str]] = []
    for label, text in entries:
        if not text:
            continue
        if merged and merged[-1][0] == label:
            merged[-1][1] = f"{merged[-1][1]} {text}"
        else:
            merged.append([label, text])
    return [CanonicalLine(speaker=label, text=text) for label, text in merged]


def _utterance_fields(u) -> tuple:
    if isinstance(u, Utterance):
        return u.speaker, u.text
    if isinstance(u, dict):
        speaker = u.get("speaker")
        if speaker is None:
            speaker = u.get("speakerRawId")
        return speaker, u.get("text")
    return getattr(u, "speaker", None), getattr(u, "text", None)


def normalize_utterances(utterances) -> NormalizedTranscript:
    """Assign neutral labels by first appearance and merge same-speaker runs.

    Args:
        utterances: Ordered Utterance objects or dicts with 'speaker' (or
            'speakerRawId') and 'text'. None is treated as an empty list.

    Returns:
        NormalizedTranscript with merged lines and the raw-id → label map.
        Utterances with empty text are dropped before a label is assigned, so
        a speaker who never said anything does not consume a letter.
    """
    speaker_map: dict[str, str] = {}
    entries = []
    received = 0

    for u in utterances or []:
        received += 1
        raw_speaker, raw_text = _utterance_fields(u)
        text = clean_text(raw_text)
        if not text:
            continue
        key = normalize_speaker_key(raw_speaker)
        if key not in speaker_map:
            speaker_map[key] = neutral_label(len(speaker_map))
        entries.append((speaker_map[key], text))

    lines = merge_lines(entries)
    logger.debug(
        f"Normalized {received} utterances → {len(lines)} lines, "
        f"{len(speaker_map)} speakers: {speaker_map}"
    )
    return NormalizedTranscript(lines=lines, speaker_map=speaker_map, utterances=received)


def parse_labeled_text(text) -> list[CanonicalLine]:
    """Split an inline-labeled transcript blob into canonical lines.

    A line break is inserted before every upstream "<marker>:" token (Speaker X,
    Prospect, Customer, Rep, Caller, Agent); "You:" and "Other:" only count at
    the start of a line, so prose like "let me tell you: ..." stays in its turn.
    Labels stacked at the start of a line ("You: Prospect: ...") keep only the
    outer one. Text without any recognizable label is kept under "Other".
    """
    raw = "" if text is None else str(text)
    if not raw.strip():
        return []

    broken = _INLINE_LABEL_RE.sub(lambda m: "\n" + m.group(0), raw)

    entries = []
    pending_outer = None
    for raw_line in broken.split("\n"):
        line = clean_text(raw_line)
        if not line:
            continue

        m = _LEADING_LABEL_RE.match(line)
        if not m:
            entries.append((pending_outer or OTHER, line))
            pending_outer = None
            continue

        label = pending_outer or canonical_label(m.group(1))
        body = clean_text(m.group(2))
        nested = _LEADING_LABEL_RE.match(body)
        while nested:
            body = clean_text(nested.group(2))
            nested = _LEADING_LABEL_RE.match(body)
        if not body:
            # Bare label: whatever comes next belongs to it
            pending_outer = label
            continue
        pending_outer = None
        entries.append((label, body))

    lines = merge_lines(entries)
    logger.debug(f"Parsed labeled text → {len(lines)} lines")
    return lines


def render_transcript(lines: list[CanonicalLine]) -> str:
    """Canonical transcript text: 'Label: text' per line."""
    return "\n".join(line.render() for line in lines)


def compute_speaker_stats(lines: list[CanonicalLine]) -> dict[str, SpeakerStats]:
    """Per-label word and turn counts, in order of first appearance."""
    stats: dict[str, SpeakerStats] = {}
    for line in lines:
        s = stats.setdefault(line.speaker, SpeakerStats())
        s.word_count += word_count(line.text)
        s.turn_count += 1
    return stats
