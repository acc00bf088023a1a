#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Turn an ENML note body into the HTML block OneNote accepts
"""

import re
from datetime import datetime

HTML_PREAMBLE = '<!DOCTYPE html><head></head>'

_STYLE = re.compile(r'(<(?:div|span)\b[^>]*?)\s+style="[^"]*"', re.IGNORECASE)
_COMMENT = re.compile(r'<!--.*?-->', re.DOTALL)
_XML_PROLOG = re.compile(r'(?:<!\[CDATA\[)?<\?xml\b[^?]*\?>', re.IGNORECASE)
# Covers both 'enml.dtd' and versioned 'enml2.dtd' system ids
_ENML_DOCTYPE = re.compile(r'(?:<!\[CDATA\[)?<!DOCTYPE en-note[^>]*>', re.IGNORECASE)
_BODY_START = re.compile(r'<en-note\b[^>]*(?<!/)>', re.IGNORECASE)
_BODY_END = re.compile(r'</en-note\s*>(?:\s*\]\]>)?', re.IGNORECASE)
_BODY_EMPTY = re.compile(r'<en-note\b[^>]*/>(?:\s*\]\]>)?', re.IGNORECASE)

_DATE_LINE = re.compile(r'^date:(.*)$', re.IGNORECASE | re.MULTILINE)
_CDATA_INNER = re.compile(r'<!\[CDATA\[(?P<text>.*?)\]\]>', re.IGNORECASE | re.DOTALL)
_APOSTROPHES = ('&apos;', '’', '‘')


def transform_body(body: str) -> str:
    """
    Normalize an ENML body into a standalone HTML document.

    Inline styles on div/span, comments, the nested XML prolog and the
    ENML doctype are removed and the <en-note> wrapper becomes <body>.

    Examples:
        >>> transform_body('<?xml version="1.0"?><en-note>Hi</en-note>')
        '<!DOCTYPE html><head></head><body>Hi</body>'
    """
    body = _STYLE.sub(r'\1', body)
    body = _COMMENT.sub('', body)
    body = _XML_PROLOG.sub('', body)
    body = _ENML_DOCTYPE.sub('', body)
    body = _BODY_START.sub('<body>', body)
    body = _BODY_END.sub('</body>', body)
    body = _BODY_EMPTY.sub('<body></body>', body)
    return HTML_PREAMBLE + body.strip()


def format_header_date(date: datetime) -> str:
    """Mail-style date, e.g. 'Wed, 01 Jan 2020 12:00:00 Z'."""
    weekday = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')[date.weekday()]
    month = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
             'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')[date.month - 1]
    return (f"{weekday}, {date.day:02d} {month} {date.year:04d} "
            f"{date.hour:02d}:{date.minute:02d}:{date.second:02d} Z")


def prepare_page_body(body: str, note_date: datetime) -> str:
    """
    Final pass before the body is embedded in a page's CDATA block.

    Replaces a 'Date:' header line with the note date, turns typographic
    apostrophes into plain ones and escapes literal CDATA sections, which
    would otherwise close the surrounding CDATA early.
    """
    body = _DATE_LINE.sub(lambda _: f"Date: {format_header_date(note_date)}", body)
    for apostrophe in _APOSTROPHES:
        body = body.replace(apostrophe, "'")
    body = _CDATA_INNER.sub(r'&lt;![CDATA[\g<text>]]&gt;', body)
    return body
