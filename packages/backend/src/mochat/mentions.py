"""Mention detection — pure lexical scan over message text.

Three surface forms are recognised, in one left-to-right pass:
    @[token]   bracketed, may contain spaces or punctuation
    <@token>   angle form used by chat clients
    @word      bare word characters

The scan never fails: anything that doesn't match is ignored.
"""

import re

_MENTION_RE = re.compile(r"@\[([^\]]+)\]|<@([^>]+)>|@(\w+)")
_MENTION_ALL_RE = re.compile(r"@(all|everyone|channel|here)\b", re.IGNORECASE)


def extract_mentions(text: str | None) -> list[str]:
    """Return distinct mention tokens in first-occurrence order."""
    if not text:
        return []
    mentions: list[str] = []
    for match in _MENTION_RE.finditer(text):
        token = match.group(1) or match.group(2) or match.group(3)
        if token and token not in mentions:
            mentions.append(token)
    return mentions


def is_mention_all(text: str | None) -> bool:
    """True if the text addresses everybody (@all, @everyone, @channel, @here)."""
    if not text:
        return False
    return _MENTION_ALL_RE.search(text) is not None


def is_mentioned(text: str | None, token: str) -> bool:
    return token in extract_mentions(text)
