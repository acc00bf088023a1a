#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
ENEX Parser - stream notes out of an Evernote export
Splits the export into raw <note> fragments without loading the whole file,
repairs each fragment and parses it into a Note
"""

import re
import base64
import binascii
import codecs
import hashlib
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from ..errors import ExportStreamError, NoteParseError
from ..models import Attachment, Note
from ..converters.text_decoder import (
    decode_field,
    html_decode,
    strip_invalid_filename_chars,
    xml_escape,
)
from .xml_sanitizer import sanitize_note_xml

CHUNK_SIZE = 1024 * 1024

ENEX_DATE_FORMAT = '%Y%m%dT%H%M%SZ'

# Source URLs pointing at the local machine or Evernote's cache are dropped
IGNORED_URL_PREFIXES = ('file://', 'en-cache://')

_NOTE_OPEN = re.compile(r'<note[\s>]')
_ROOT_OPEN = re.compile(r'<en-export[\s>]')
_NOTE_CLOSE = '</note>'
_CDATA_OPEN = '<![CDATA['
_CDATA_CLOSE = ']]>'
# Enough trailing text to hold a partial '<en-export' or '<note' tag
_KEEP_TAIL = 16

_TITLE_GUESS = re.compile(r'<title>(.+?)</title>', re.IGNORECASE)


@dataclass
class ExtractedNote:
    """One <note> fragment and the result of parsing it."""
    index: int
    fragment: str
    note: Optional[Note] = None
    error: Optional[NoteParseError] = None


def guess_note_title(fragment: str) -> Optional[str]:
    """Best-effort title of a note that might not be valid XML."""
    match = _TITLE_GUESS.search(fragment or '')
    if match:
        return match.group(1)
    return None


def _find_note_end(buffer: str, pos: int):
    """
    Find the end of the </note> tag starting at pos, skipping CDATA sections.

    Returns:
        Tuple of (end index or None, position to resume scanning from)
    """
    while True:
        close = buffer.find(_NOTE_CLOSE, pos)
        cdata = buffer.find(_CDATA_OPEN, pos)
        if cdata != -1 and (close == -1 or cdata < close):
            cdata_end = buffer.find(_CDATA_CLOSE, cdata + len(_CDATA_OPEN))
            if cdata_end == -1:
                return None, cdata
            pos = cdata_end + len(_CDATA_CLOSE)
            continue
        if close == -1:
            # A marker may be cut in half at the end of the buffer
            return None, max(pos, len(buffer) - len(_CDATA_OPEN))
        end = close + len(_NOTE_CLOSE)
        return end, end


def iter_note_fragments(export_path: Path, cancel_token=None,
                        on_progress: Optional[Callable[[int, int], None]] = None,
                        chunk_size: int = CHUNK_SIZE) -> Iterator[str]:
    """
    Yield every top-level <note> element of an export as raw text.

    The file is read in chunks; each call starts again at the beginning
    of the file.

    Args:
        export_path: ENEX file
        cancel_token: Optional CancellationToken, polled between chunks and notes
        on_progress: Optional callback receiving (bytes_read, file_size)
        chunk_size: Bytes read per chunk

    Raises:
        ExportStreamError: If the file cannot be read or is broken above note level
    """
    export_path = Path(export_path)
    try:
        file_size = export_path.stat().st_size
        stream = open(export_path, 'rb')
    except OSError as e:
        raise ExportStreamError(f"Cannot open export file {export_path}: {e}") from e

    decoder = codecs.getincrementaldecoder('utf-8-sig')()
    buffer = ''
    note_start = None
    scan_pos = 0
    seen_root = False
    bytes_read = 0

    with stream:
        while True:
            if cancel_token is not None and cancel_token.cancelled:
                return

            try:
                chunk = stream.read(chunk_size)
            except OSError as e:
                raise ExportStreamError(f"Error reading {export_path}: {e}") from e
            at_eof = not chunk
            bytes_read += len(chunk)

            try:
                buffer += decoder.decode(chunk, final=at_eof)
            except UnicodeDecodeError as e:
                partial = buffer[note_start:] if note_start is not None else ''
                raise ExportStreamError(f"Export file is not valid UTF-8: {e}",
                                        partial, guess_note_title(partial)) from e

            if on_progress is not None:
                on_progress(bytes_read, file_size)

            while True:
                if note_start is None:
                    match = _NOTE_OPEN.search(buffer, scan_pos)
                    if match is None:
                        seen_root = seen_root or _ROOT_OPEN.search(buffer) is not None
                        keep = max(0, len(buffer) - _KEEP_TAIL)
                        buffer = buffer[keep:]
                        scan_pos = 0
                        break
                    if not seen_root:
                        if _ROOT_OPEN.search(buffer, 0, match.start()) is None:
                            raise ExportStreamError("Found a <note> outside of an <en-export> element")
                        seen_root = True
                    note_start = match.start()
                    scan_pos = match.end()

                end, scan_pos = _find_note_end(buffer, scan_pos)
                if end is None:
                    break

                fragment = buffer[note_start:end]
                buffer = buffer[end:]
                note_start = None
                scan_pos = 0
                yield fragment

                if cancel_token is not None and cancel_token.cancelled:
                    return

            if at_eof:
                if note_start is not None:
                    partial = buffer[note_start:]
                    raise ExportStreamError("Unexpected end of file inside a <note> element",
                                            partial, guess_note_title(partial))
                if not seen_root:
                    raise ExportStreamError("No <en-export> element found - "
                                            "the notebook is empty or not an Evernote export")
                return


def _inner_text(elem) -> str:
    if elem is None:
        return ''
    return ''.join(elem.itertext())


def _inner_xml(elem) -> str:
    """Markup between the start and end tag of elem (text, children, tails)."""
    parts = [elem.text or '']
    for child in elem:
        parts.append(ET.tostring(child, encoding='unicode'))
    return ''.join(parts)


class EnexNoteParser:
    """Parse Evernote <note> fragments into Note records."""

    def __init__(self, use_modified_date: bool = False):
        self.use_modified_date = use_modified_date
        self.logger = logging.getLogger('EnexParser')

    def parse_note(self, fragment: str, with_attachments: bool = True) -> Note:
        """
        Parse one raw <note> fragment.

        Args:
            fragment: <note>...</note> text as found in the export
            with_attachments: Decode and hash <resource> payloads as well

        Returns:
            Parsed Note

        Raises:
            NoteParseError: If the fragment is not valid XML after repair,
                or a resource payload is not valid base64
        """
        xml_text = sanitize_note_xml(fragment)
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise NoteParseError(f"Invalid XML in note: {e}", fragment,
                                 guess_note_title(xml_text)) from e

        note = Note(title=self._extract_title(root))
        note.content = self._extract_content(root)

        for tag in root.iter('tag'):
            note.add_tag(html_decode(_inner_text(tag)))

        note.date = self._extract_date(root, note.date)
        note.source_url = self._extract_source_url(root)

        if with_attachments:
            note.attachments = self._extract_attachments(root, note.title, fragment)

        return note

    def iter_notes(self, export_path: Path, cancel_token=None, archive=None,
                   on_progress: Optional[Callable[[int, int], None]] = None,
                   with_attachments: bool = True) -> Iterator[ExtractedNote]:
        """
        Stream and parse every note of an export.

        A note that fails to parse is yielded with its error (and archived
        when an archive is given); the following notes are still read.
        """
        fragments = iter_note_fragments(export_path, cancel_token, on_progress)
        for index, fragment in enumerate(fragments):
            try:
                note = self.parse_note(fragment, with_attachments)
            except NoteParseError as e:
                if archive is not None:
                    e.archive_path = archive.save(fragment)
                self.logger.error(f"Error parsing note \"{e.title or 'unknown'}\": {e}")
                yield ExtractedNote(index, fragment, error=e)
                continue
            yield ExtractedNote(index, fragment, note=note)

    def _extract_title(self, root) -> str:
        """Title is the first child of <note>."""
        if len(root) == 0:
            return ''
        return decode_field(_inner_text(root[0]))

    def _extract_content(self, root) -> str:
        content = next(root.iter('content'), None)
        if content is None:
            return ''
        return decode_field(_inner_xml(content))

    def _extract_date(self, root, default: datetime) -> datetime:
        date = default
        for created in root.iter('created'):
            date = self._parse_datetime(_inner_text(created)) or date

        if self.use_modified_date:
            for updated in root.iter('updated'):
                date = self._parse_datetime(_inner_text(updated)) or date

        return date

    def _parse_datetime(self, value: str) -> Optional[datetime]:
        """Parse an ENEX timestamp (20200101T120000Z) as UTC."""
        try:
            return datetime.strptime(value.strip(), ENEX_DATE_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            self.logger.warning(f"Ignoring unparsable note date: {value!r}")
            return None

    def _extract_source_url(self, root) -> Optional[str]:
        source_url = None
        for element in root.iter('source-url'):
            url = _inner_text(element).strip()
            if not url or url.startswith(IGNORED_URL_PREFIXES):
                continue
            source_url = url
        return source_url

    def _extract_attachments(self, root, title: str, fragment: str) -> List[Attachment]:
        """
        Build one Attachment per <resource>.

        <file-name> and <mime> are matched to resources by their position
        among all elements of the same name in the note. ENEX writes them in
        resource order, but nothing in the format guarantees it.
        """
        file_names = list(root.iter('file-name'))
        mimes = list(root.iter('mime'))
        attachments = []

        for resource in root.iter('resource'):
            data = resource.find('data')
            if data is None and len(resource):
                data = resource[0]
            base64_data = _inner_text(data)

            try:
                payload = base64.b64decode(base64_data)
            except (binascii.Error, ValueError) as e:
                raise NoteParseError(f"Invalid base64 data in resource {len(attachments) + 1}: {e}",
                                     fragment, title) from e

            attachment = Attachment(
                base64_data=base64_data,
                hash=hashlib.md5(payload).hexdigest()
            )

            position = len(attachments)
            if position < len(file_names):
                attachment.file_name = self._clean_file_name(_inner_text(file_names[position]))
            if position < len(mimes):
                attachment.content_type = html_decode(_inner_text(mimes[position]))

            self.logger.debug(f"Resource {attachment.hash}: {attachment.file_name} ({attachment.content_type})")
            attachments.append(attachment)

        return attachments

    def _clean_file_name(self, raw_name: str) -> Optional[str]:
        """Decode, strip characters illegal in file names and escape for XML attributes."""
        name = strip_invalid_filename_chars(decode_field(raw_name))
        if not name:
            return None
        return xml_escape(name)
