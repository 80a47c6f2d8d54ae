"""Mention tokens.

Stored post content refers to users as ``@<user id>`` so a mention survives
username changes; the username is looked up when the post is read. Any
identity-provider id made of letters, digits, ``_`` or ``-`` is accepted.
A token found in plain text (``@juan``) that matches no user id is left as is.
"""

import re
from typing import Dict, List

# Not preceded by a word character, so e-mail addresses are skipped
MENTION_PATTERN = re.compile(r"(?<![\w@])@([A-Za-z0-9_-]+)")


def mention_token(user_id: str) -> str:
    """Token inserted into content when a mention candidate is picked."""
    return f"@{user_id} "


def extract_mention_ids(content: str) -> List[str]:
    """Distinct mentioned ids, in order of first appearance."""
    return list(dict.fromkeys(MENTION_PATTERN.findall(content)))


def render_mentions(content: str, usernames: Dict[str, str]) -> str:
    """Replace known tokens with ``@username``; unknown ids are left alone."""

    def _replace(match: re.Match) -> str:
        username = usernames.get(match.group(1))
        return f"@{username}" if username else match.group(0)

    return MENTION_PATTERN.sub(_replace, content)
