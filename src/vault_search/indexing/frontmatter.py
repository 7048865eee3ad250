"""
Front-matter extraction for markdown notes.

Only the flat ``key: value`` form is understood; nested YAML is out of
scope. Values are kept as strings and interpreted by the search filters.
"""

from __future__ import annotations

import re


_FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---(?:\r?\n|\Z)", flags=re.DOTALL)


def extract_frontmatter(content: str) -> dict[str, str]:
    """Return the leading ``---`` block of *content* as a key/value map."""
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}

    metadata: dict[str, str] = {}
    for line in match.group(1).splitlines():
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        metadata[key] = value.strip()
    return metadata
