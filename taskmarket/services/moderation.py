"""Banned-content screen applied when a task is posted."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

BANNED_WORDS: tuple[str, ...] = (
    # violence & weapons
    "kill", "murder", "gun", "weapon", "bomb", "explosive", "knife", "violence", "assault",
    # drugs
    "drugs", "cocaine", "heroin", "meth", "weed", "marijuana", "pills", "dealer",
    # sexual content
    "sex", "sexual", "porn", "nude", "naked", "escort", "prostitute", "hookup",
    # hate speech
    "racist", "racism", "nazi", "slur", "bigot",
    # illegal activity
    "steal", "theft", "fraud", "scam", "fake id", "plagiarism", "illegal",
    # underage alcohol
    "buy alcohol", "get beer", "purchase liquor", "underage drinking",
    # academic dishonesty
    "do my homework", "write my essay", "take my exam",
)

BANNED_PHRASES: tuple[str, ...] = (
    "no questions asked",
    "under the table",
    "cash only no receipt",
    "dont tell anyone",
    "keep this secret",
    "off the books",
    "no paper trail",
)

REJECTION_MESSAGE = "This task contains language that is not allowed. Please edit and try again."


@dataclass(frozen=True)
class ModerationResult:
    is_allowed: bool
    flagged: list[str] = field(default_factory=list)

    @property
    def message(self) -> str | None:
        return None if self.is_allowed else REJECTION_MESSAGE


class ContentRejected(ValueError):
    def __init__(self, result: ModerationResult):
        self.result = result
        super().__init__(REJECTION_MESSAGE)


def screen_text(*texts: str) -> ModerationResult:
    """Whole-word, case-insensitive match against the banned terms."""
    flagged: list[str] = []
    for text in texts:
        normalized = (text or "").lower().strip()
        if not normalized:
            continue
        for term in BANNED_WORDS + BANNED_PHRASES:
            if term not in flagged and re.search(rf"\b{re.escape(term)}\b", normalized):
                flagged.append(term)
    return ModerationResult(is_allowed=not flagged, flagged=flagged)
