#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
ENEX XML repair - fix known-bad text in a <note> fragment before parsing.

Evernote exports are nominally XML, but titles and author names are
regularly written with raw '&', '<' or quotes, and attachment file names
carry HTML entities such as &nbsp;. ElementTree rejects those fragments,
so each fragment goes through a fixed list of independent text rules
first. The rules only escape raw characters, which makes sanitizing an
already sanitized fragment a no-op.
"""

import re
from typing import Callable, Iterable, List, Tuple

from ..converters.text_decoder import strip_invalid_filename_chars

# '&' that does not start an XML entity or character reference
_UNESCAPED_AMP = re.compile(r'&(?!(?:amp|lt|gt|quot|apos|#[0-9]+|#[xX][0-9a-fA-F]+);)')

_CHAR_ENTITIES = {
    '"': '&quot;',
    "'": '&apos;',
    '<': '&lt;',
    '>': '&gt;',
    '@': '&#64;',
}

_TITLE = re.compile(r'(<title>)(.*?)(</title>)', re.IGNORECASE | re.DOTALL)
_AUTHOR = re.compile(r'(<author>)(.*?)(</author>)', re.IGNORECASE | re.DOTALL)
_FILE_NAME = re.compile(r'(<file-name>)(.*?)(</file-name>)', re.IGNORECASE | re.DOTALL)

# Note bodies live in CDATA and are left alone
_CDATA_SECTION = re.compile(r'(<!\[CDATA\[.*?\]\]>)', re.DOTALL)


def escape_raw_chars(text: str, chars: Iterable[str]) -> str:
    """Escape unescaped '&' and every raw character in chars."""
    text = _UNESCAPED_AMP.sub('&amp;', text)
    for char in chars:
        text = text.replace(char, _CHAR_ENTITIES[char])
    return text


def _escape_element_text(match: re.Match) -> str:
    text = escape_raw_chars(match.group(2), ('"', "'", '<', '>', '@'))
    return f"{match.group(1)}{text}{match.group(3)}"


def _repair_file_name(match: re.Match) -> str:
    name = match.group(2).replace('&nbsp;', ' ')
    name = strip_invalid_filename_chars(name)
    name = escape_raw_chars(name, ("'",))
    return f"{match.group(1)}{name}{match.group(3)}"


SANITIZE_RULES: List[Tuple[re.Pattern, Callable[[re.Match], str]]] = [
    (_TITLE, _escape_element_text),
    (_AUTHOR, _escape_element_text),
    (_FILE_NAME, _repair_file_name),
]


def sanitize_note_xml(text: str) -> str:
    """
    Repair a raw <note> fragment so that it can be parsed as XML.

    Args:
        text: One complete <note>...</note> element as text

    Returns:
        The repaired fragment, or the input unchanged if nothing matched
    """
    parts = _CDATA_SECTION.split(text)
    # Odd indices hold the CDATA sections themselves
    for i in range(0, len(parts), 2):
        for pattern, repair in SANITIZE_RULES:
            parts[i] = pattern.sub(repair, parts[i])
    return ''.join(parts)
