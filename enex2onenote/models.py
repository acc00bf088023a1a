#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Data model shared by the extractors, converters and the sync driver.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import List, Optional

# Date of a note without a parsable <created> element
ZERO_DATE = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class Attachment:
    """One embedded <resource> of a note."""
    base64_data: str
    hash: str
    file_name: Optional[str] = None
    content_type: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.content_type is not None and 'image' in self.content_type


@dataclass
class Note:
    """One Evernote note as read from the export."""
    title: str = ''
    content: str = ''
    tags: List[str] = field(default_factory=list)
    date: datetime = ZERO_DATE
    source_url: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)

    def add_tag(self, tag: str):
        # Tags keep document order, duplicates are ignored
        if tag not in self.tags:
            self.tags.append(tag)


class SyncStep(IntEnum):
    START = 0
    EXTRACT_NOTES = 1
    PARSE_NOTES = 2
    CALCULATE_WHAT_TO_DO = 3
    IMPORT_NOTES = 4
    FINISHED = 5


@dataclass
class ProgressUpdate:
    """Latest progress snapshot pushed from the sync worker."""
    step: SyncStep
    line1: Optional[str]
    line2: Optional[str]
    position: int
    maximum: int
    full_position: int


@dataclass
class NoteFailure:
    """A note that could not be parsed or imported."""
    title: Optional[str]
    error: str
    stage: str
    archive_path: Optional[Path] = None


@dataclass
class SyncResult:
    """Summary of one sync run."""
    status: str = 'finished'
    notes_found: int = 0
    notes_imported: int = 0
    notes_skipped: int = 0
    pages_created: int = 0
    failures: List[NoteFailure] = field(default_factory=list)
    error: Optional[str] = None
