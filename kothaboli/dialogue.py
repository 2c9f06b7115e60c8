"""Rule-based rewrite of dialogue-looking lines into Bengali dash notation."""

from __future__ import annotations

from typing import Iterable

DIALOGUE_DASH = "—"

# Closed lexicon of attribution verbs, matched as exact substrings.
DIALOGUE_VERBS = frozenset(
    {
        "বলল",  # said
        "বললেন",  # said (honorific)
        "বলছি",  # am saying
        "জিজ্ঞেস করল",  # asked
    }
)


# str.strip keeps U+FEFF, which editors leave at the head of a file.
def _trim(line: str) -> str:
    return line.strip().strip("\ufeff").strip()


def is_dialogue_line(line: str, lexicon: Iterable[str] = DIALOGUE_VERBS) -> bool:
    trimmed = _trim(line)
    if not trimmed or trimmed.startswith(DIALOGUE_DASH):
        return False
    if ":" in trimmed:
        return True
    return any(verb in trimmed for verb in lexicon)


def format_dialogue(text: str, lexicon: Iterable[str] = DIALOGUE_VERBS) -> str:
    """Prefix every dialogue-looking line with ``"— "``.

    Candidate lines lose their original indentation; every other line,
    blank or already dashed, is returned unchanged. The number of lines
    never changes.
    """
    verbs = tuple(lexicon)
    lines = text.split("\n")
    formatted = [
        f"{DIALOGUE_DASH} {_trim(line)}" if is_dialogue_line(line, verbs) else line
        for line in lines
    ]
    return "\n".join(formatted)
