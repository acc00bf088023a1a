#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Build OneNote 2013 page XML for an imported note
"""

import random
from datetime import datetime
from typing import Optional

from .text_decoder import xml_escape

ONENOTE_NAMESPACE = 'http://schemas.microsoft.com/office/onenote/2013/onenote'

PAGE_XML = (
    '<?xml version="1.0"?>'
    '<one:Page xmlns:one="{namespace}" ID="{page_id}" dateTime="{date}">'
    '<one:Title selected="partial" lang="en-US">'
    '<one:OE creationTime="{date}" lastModifiedTime="{date}">'
    '<one:T><![CDATA[{title}]]></one:T> '
    '</one:OE>'
    '</one:Title>{inserted_files}'
    '<one:Outline>{outline}</one:Outline></one:Page>'
)

OUTLINE_XML = (
    '<one:Meta name="{title}" content="{outline_id}"/>'
    '<one:OEChildren><one:HTMLBlock><one:Data><![CDATA[{body}]]></one:Data></one:HTMLBlock>'
    '{source}</one:OEChildren>'
)

SOURCE_URL_XML = (
    '<one:OE alignment="left" quickStyleIndex="2">'
    '<one:T><![CDATA[From &lt;<a href="{url}">{url}</a>&gt; ]]></one:T></one:OE>'
)


def format_onenote_datetime(date: datetime) -> str:
    """Format a date as yyyy-MM-ddTHH:mm:ssZ."""
    return (f"{date.year:04d}-{date.month:02d}-{date.day:02d}"
            f"T{date.hour:02d}:{date.minute:02d}:{date.second:02d}Z")


def page_title(title: str) -> str:
    """XML-escaped title with plain apostrophes."""
    return xml_escape(title).replace('&apos;', "'")


def new_outline_id() -> int:
    return random.randint(0, 2 ** 31 - 1)


def build_page_xml(page_id: str, title: str, body: str, inserted_files: str = '',
                   source_url: Optional[str] = None, date: Optional[datetime] = None,
                   outline_id: Optional[int] = None) -> str:
    """
    Assemble the page document passed to UpdatePageContent.

    Args:
        page_id: ID of the page created for this note
        title: Note title (unescaped)
        body: Prepared HTML body
        inserted_files: Concatenated <one:InsertedFile> elements
        source_url: Where the note was clipped from, if known
        date: Creation date written to the page and title
        outline_id: Value for the outline's Meta element, random if not given

    Returns:
        Page XML as a string
    """
    title = page_title(title)
    source = SOURCE_URL_XML.format(url=source_url) if source_url else ''
    outline = OUTLINE_XML.format(
        title=title,
        outline_id=new_outline_id() if outline_id is None else outline_id,
        body=body,
        source=source
    )
    return PAGE_XML.format(
        namespace=ONENOTE_NAMESPACE,
        page_id=page_id,
        date=format_onenote_datetime(date) if date is not None else '',
        title=title,
        inserted_files=inserted_files,
        outline=outline
    )
