#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Attachment Resolver - materialize note resources for OneNote
Writes each resource to a temp file named after its MD5 hash, then either
turns the <en-media> reference in the body into an <img> or adds an
InsertedFile element to the page
"""

import re
import base64
import binascii
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from ..errors import AttachmentError
from ..models import Attachment, Note
from ..converters.text_decoder import xml_escape

INSERTED_FILE_XML = '<one:InsertedFile pathSource="{path}" preferredName="{name}" />'

# Evernote adds this overlay image to make text in images searchable
OCR_OVERLAY_NAME = 'proxy.php'


@dataclass
class ResolvedNote:
    """Note body with resources rewritten, plus what has to go with the page."""
    body: str
    inserted_files: List[str] = field(default_factory=list)
    temp_files: List[Path] = field(default_factory=list)

    @property
    def inserted_files_xml(self) -> str:
        return ''.join(self.inserted_files)


def media_patterns(content_hash: str) -> List[re.Pattern]:
    """Patterns for <en-media hash="..."/> and <en-media hash="..."></en-media>."""
    hash_attr = re.escape(content_hash)
    return [
        re.compile(r'<en-media\b[^>]*?hash="' + hash_attr + r'"[^>]*/>', re.IGNORECASE),
        re.compile(r'<en-media\b[^>]*?hash="' + hash_attr + r'"[^>]*></en-media>', re.IGNORECASE),
    ]


class AttachmentResolver:
    """Write note resources to disk and rewrite the body to point at them."""

    def __init__(self, temp_dir: Path):
        self.temp_dir = Path(temp_dir)
        self.logger = logging.getLogger('AttachmentResolver')

    def resolve(self, note: Note) -> ResolvedNote:
        """
        Materialize all attachments of a note.

        Args:
            note: Parsed note; its attachment list is cleared afterwards

        Returns:
            ResolvedNote with the rewritten body and InsertedFile elements

        Raises:
            AttachmentError: If a payload cannot be decoded or written
        """
        resolved = ResolvedNote(body=note.content)
        if note.attachments:
            self.temp_dir.mkdir(parents=True, exist_ok=True)

        try:
            for attachment in note.attachments:
                self._resolve_attachment(attachment, resolved)
        except AttachmentError:
            self.cleanup(resolved)
            raise
        finally:
            note.attachments.clear()

        return resolved

    def _resolve_attachment(self, attachment: Attachment, resolved: ResolvedNote):
        file_path = self._write_attachment(attachment)
        resolved.temp_files.append(file_path)

        if attachment.is_image:
            for pattern in media_patterns(attachment.hash):
                if pattern.search(resolved.body):
                    img_tag = f'<img src="file:///{file_path}"/>'
                    resolved.body = pattern.sub(lambda _: img_tag, resolved.body)
                    self.logger.debug(f"Inlined image {attachment.hash}")
                    return

        if attachment.file_name:
            if attachment.is_image and attachment.file_name == OCR_OVERLAY_NAME:
                self.logger.debug(f"Dropped OCR overlay image {attachment.hash}")
                return
            name = attachment.file_name
        else:
            name = attachment.hash

        resolved.inserted_files.append(
            INSERTED_FILE_XML.format(path=xml_escape(str(file_path)), name=name)
        )
        self.logger.debug(f"Attached file {name} ({attachment.hash})")

    def _write_attachment(self, attachment: Attachment) -> Path:
        """Decode the payload and save it under its hash."""
        try:
            data = base64.b64decode(attachment.base64_data)
        except (binascii.Error, ValueError) as e:
            raise AttachmentError(f"Failed to decode base64 data for {attachment.hash}: {e}") from e

        file_path = self.temp_dir / attachment.hash
        try:
            with open(file_path, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise AttachmentError(f"Failed to write attachment {file_path}: {e}") from e

        # Payload is not needed once it is on disk
        attachment.base64_data = ''
        self.logger.debug(f"Saved {file_path.name}: {len(data)} bytes")
        return file_path

    def cleanup(self, resolved: ResolvedNote):
        """Delete the temp files written for one note."""
        for path in resolved.temp_files:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                self.logger.warning(f"Could not delete temp file {path}: {e}")
        resolved.temp_files.clear()
