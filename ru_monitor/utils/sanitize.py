"""
Query Text Sanitization

Turns raw SQL (or a short ORM operation label) into a diagnostic string
that keeps the statement's shape but none of its literal data.
"""

import re

MAX_QUERY_LENGTH = 200

VALUES_PLACEHOLDER = "VALUES (...)"

_VALUES_KEYWORD = re.compile(r"\bVALUES\s*\(", re.IGNORECASE)
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_WHITESPACE = re.compile(r"\s+")


def _redact_values_lists(query: str) -> str:
    """
    Replace every ``VALUES (...)`` literal list with a fixed placeholder.

    Parentheses are matched by depth so nested calls such as
    ``VALUES (now(), lower('A'))`` are swallowed whole, and quoted
    strings are skipped so a ``)`` inside a literal does not end the list.
    Multi-row inserts (``VALUES (..), (..)``) collapse to one placeholder.
    An unterminated list is redacted to the end of the text.
    """
    parts = []
    position = 0

    while True:
        match = _VALUES_KEYWORD.search(query, position)
        if match is None:
            parts.append(query[position:])
            break

        parts.append(query[position:match.start()])
        parts.append(VALUES_PLACEHOLDER)
        end = _skip_group(query, match.end())

        # Further row tuples belong to the same clause
        while True:
            follow = re.match(r"\s*,\s*\(", query[end:])
            if follow is None:
                break
            end = _skip_group(query, end + follow.end())

        position = end

    return "".join(parts)


def _skip_group(query: str, index: int) -> int:
    """Return the index just past the ``)`` closing a group opened before ``index``."""
    depth = 1
    in_string = False
    length = len(query)

    while index < length and depth:
        char = query[index]
        if in_string:
            if char == "'":
                in_string = False
        elif char == "'":
            in_string = True
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        index += 1

    return index


def sanitize_query(query: str) -> str:
    """
    Produce a redacted, length-capped representation of ``query``.

    - ``VALUES (...)`` literal lists become ``VALUES (...)``
    - remaining single-quoted literals become ``'***'``
    - whitespace runs collapse to a single space
    - the result is capped at 200 characters

    Never raises; text without anything to redact passes through apart
    from whitespace folding and the length cap.
    """
    if query is None:
        return ""
    if not isinstance(query, str):
        query = str(query)

    sanitized = _redact_values_lists(query)
    sanitized = _STRING_LITERAL.sub("'***'", sanitized)
    sanitized = _WHITESPACE.sub(" ", sanitized).strip()

    return sanitized[:MAX_QUERY_LENGTH]
