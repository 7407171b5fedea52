"""Markup and structured-data parsing primitives.

Both parsers turn a fetched body into a tree the strategies can navigate,
and report malformed input as ParseError so a strategy can move on to its
next candidate.
"""

import json
from typing import Any

from bs4 import BeautifulSoup

from cascade.exceptions import ParseError


def parse_html(body: str, url: str = "") -> BeautifulSoup:
    """Build a CSS-queryable DOM tree.

    Raises:
        ParseError: If the body is empty.
    """
    if not body or not body.strip():
        raise ParseError(url=url, reason="Empty body", content_kind="html")
    return BeautifulSoup(body, "html.parser")


def parse_structured(body: str, url: str = "") -> Any:
    """Decode a JSON body.

    Raises:
        ParseError: If the body is empty or not valid JSON.
    """
    if not body or not body.strip():
        raise ParseError(url=url, reason="Empty body")
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise ParseError(url=url, reason=f"{exc.msg} at position {exc.pos}") from exc


def script_bodies(document: BeautifulSoup) -> list[str]:
    """Text of every inline (non-``src``) script element, in document order."""
    bodies = []
    for script in document.find_all("script"):
        if script.get("src"):
            continue
        text = script.string if script.string is not None else script.get_text()
        if text and text.strip():
            bodies.append(text)
    return bodies
