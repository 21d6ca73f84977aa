"""Heuristic highlight extraction from a transcript."""

import re

DEFAULT_SUBJECT = "User"
MAX_WORDS = 20
ELLIPSIS = "..."
TAG_SEPARATOR = " – "

SENTENCE_SPLIT = re.compile(r"[.!?]+")
# Maximal run of Capitalized words, e.g. "Mahendra Singh Dhoni"
PROPER_NOUN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")
# A count followed by one or more trophy keywords, e.g. "2 icc trophy"
TROPHY_COUNT = re.compile(
    r"\b\d+\s*(?:icc|ipl|trophies|trophy)(?:\s+(?:icc|ipl|trophies|trophy))*\b",
    re.IGNORECASE,
)
ROLE_KEYWORDS = ("captain", "farmer")
WIN_KEYWORDS = ("won", "winner")


def split_sentences(text: str) -> list[str]:
    """Split on runs of sentence terminators, dropping empty fragments."""
    return [s.strip() for s in SENTENCE_SPLIT.split(text) if s.strip()]


def find_subject(text: str) -> str:
    """First capitalized phrase in ``text``, or the default subject."""
    match = PROPER_NOUN.search(text)
    return match.group(0) if match else DEFAULT_SUBJECT


def find_tags(text: str) -> list[str]:
    """Achievement tags, in a fixed order: roles first, then trophy counts."""
    tags = [keyword for keyword in ROLE_KEYWORDS if keyword in text]

    if any(keyword in text for keyword in WIN_KEYWORDS):
        tags.extend(match.group(0).lower() for match in TROPHY_COUNT.finditer(text))

    return tags


def truncate_words(text: str, max_words: int = MAX_WORDS) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + ELLIPSIS


def summarize(text: str) -> str:
    """
    Condense a transcript into a short highlight phrase.

    The subject is the first capitalized phrase ("User" if there is none),
    followed by any achievement tags. Text without any sentence is
    returned unchanged.

    Args:
        text: Transcript text

    Returns:
        The highlight, at most 20 words plus "..." when truncated
    """
    if not split_sentences(text):
        return text

    summary = find_subject(text)
    tags = find_tags(text)
    if tags:
        summary = summary + TAG_SEPARATOR + ", ".join(tags)

    return truncate_words(summary)
