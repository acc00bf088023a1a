#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Shared utilities for decoding and escaping note text.

Evernote stores titles, file names and sometimes whole bodies either
HTML-entity encoded or as RFC 2047 encoded-words (=?charset?B?...?=),
depending on the client that created the note.
"""

import re
import html
from email.header import decode_header
from email.errors import HeaderParseError
from typing import Optional
from xml.sax.saxutils import escape

MIME_WORD_PREFIX = '=?'

# Characters Windows refuses in file names
INVALID_FILENAME_CHARS = '"<>|:*?\\/' + ''.join(chr(i) for i in range(32))

_ENCODED_WORD = re.compile(r'=\?([^?\s]+)\?([BbQq])\?([^?\s]*)\?=')

_XML_ENTITIES = {'"': '&quot;', "'": '&apos;'}


def html_decode(text: str) -> str:
    """Decode HTML entities (&amp;, &lt;, &#64;, ...) to literal characters."""
    return html.unescape(text)


def html_encode(text: str) -> str:
    """Encode & < > " ' as HTML entities."""
    return html.escape(text, quote=True)


def xml_escape(text: str) -> str:
    """Escape text for use in XML character data or attribute values.

    Examples:
        >>> xml_escape('a "b" & <c>')
        'a &quot;b&quot; &amp; &lt;c&gt;'
    """
    return escape(text, _XML_ENTITIES)


def strip_invalid_filename_chars(name: str) -> str:
    """Remove characters that are not allowed in Windows file names."""
    return ''.join(c for c in name if c not in INVALID_FILENAME_CHARS)


def _decode_encoded_word(word: str) -> Optional[str]:
    """Decode one =?charset?enc?data?= span, None if it is malformed."""
    try:
        chunks = []
        for data, charset in decode_header(word):
            if isinstance(data, str):
                chunks.append(data)
                continue
            # RFC 2231 language suffix: =?utf-8*en?Q?...?=
            charset = (charset or 'ascii').split('*')[0]
            chunks.append(data.decode(charset))
        return ''.join(chunks)
    except (HeaderParseError, LookupError, UnicodeDecodeError, ValueError):
        return None


def decode_mime_words(text: str) -> str:
    """Decode all RFC 2047 encoded-words in text.

    Both Base64 (B) and quoted-printable (Q) words are handled. Whitespace
    between two adjacent encoded-words is dropped, as header folding
    requires, so folded multi-word values come back as one string.
    Malformed words are passed through unchanged.

    Examples:
        >>> decode_mime_words('=?utf-8?B?SGVsbG8=?= =?utf-8?Q?_W=C3=B6rld?=')
        'Hello Wörld'
    """
    parts = []
    pos = 0
    last_was_word = False

    for match in _ENCODED_WORD.finditer(text):
        between = text[pos:match.start()]
        if not (last_was_word and not between.strip()):
            parts.append(between)

        decoded = _decode_encoded_word(match.group(0))
        if decoded is None:
            parts.append(match.group(0))
            last_was_word = False
        else:
            parts.append(decoded)
            last_was_word = True
        pos = match.end()

    parts.append(text[pos:])
    return ''.join(parts)


def decode_field(text: str) -> str:
    """HTML-decode a field, then MIME-decode it if it starts with '=?'."""
    text = html_decode(text)
    if text.startswith(MIME_WORD_PREFIX):
        text = decode_mime_words(text)
    return text
