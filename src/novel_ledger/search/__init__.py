"""Mention resolution: fuzzy entity search and @-token processing."""

from .mentions import (
    MentionQuery,
    MentionResult,
    ResolvedMention,
    detect_trailing_mention,
    insert_mention,
    process_mentions,
    suggest_for_text,
)
from .resolver import Candidate, MentionResolver, fuzzy_match

__all__ = [
    "Candidate",
    "MentionResolver",
    "fuzzy_match",
    "MentionQuery",
    "MentionResult",
    "ResolvedMention",
    "detect_trailing_mention",
    "insert_mention",
    "process_mentions",
    "suggest_for_text",
]
