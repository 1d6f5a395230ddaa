# voicerelay/processors/text_cleaner.py
"""
Turn a model answer into plain speakable text that fits device memory.

Functions:
- clean_response(text) -> text without markdown, whitespace collapsed
- truncate_response(text, limit) -> text no longer than limit (+ "..." on a hard cut)
"""

import re

from voicerelay.config import MAX_RESPONSE_LENGTH

SENTENCE_ENDINGS = (".", "?", "!")

_MARKDOWN_RULES = [
    (re.compile(r"\*\*"), ""),                       # bold
    (re.compile(r"\*"), ""),                         # italic / bullets
    (re.compile(r"_"), " "),
    (re.compile(r"#{1,6}\s*"), ""),                  # headers
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),   # links keep their label
    (re.compile(r"```[\s\S]*?```"), ""),             # fenced code blocks
    (re.compile(r"`([^`]+)`"), r"\1"),               # inline code
    (re.compile(r"\n{3,}"), "\n\n"),
    (re.compile(r"\s+"), " "),
]


def clean_response(text: str) -> str:
    cleaned = text or ""
    for pattern, repl in _MARKDOWN_RULES:
        cleaned = pattern.sub(repl, cleaned)
    return cleaned.strip()


def truncate_response(text: str, limit: int = MAX_RESPONSE_LENGTH) -> str:
    """
    Cut text to `limit` characters. If a sentence ending lies past the midpoint
    of the limit, end there; otherwise keep the hard cut and append "...".
    """
    if len(text) <= limit:
        return text
    cut = text[:limit]
    last_end = max(cut.rfind(p) for p in SENTENCE_ENDINGS)
    if last_end > limit * 0.5:
        return cut[:last_end + 1]
    return cut + "..."


def format_for_device(text: str, limit: int = MAX_RESPONSE_LENGTH) -> str:
    return truncate_response(clean_response(text), limit)
