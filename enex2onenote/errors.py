#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Exceptions raised while importing an Evernote export.

Per-note errors (NoteParseError, AttachmentError, SectionError) are caught
by the sync driver, which skips the note and continues. ExportStreamError
and OneNoteConnectionError stop the whole run.
"""

from pathlib import Path
from typing import Optional


class Enex2OneNoteError(Exception):
    """Base class for all import errors."""


class ExportStreamError(Enex2OneNoteError):
    """The export file is broken above the level of a single note."""

    def __init__(self, message: str, fragment: str = '', title: Optional[str] = None):
        super().__init__(message)
        self.fragment = fragment
        self.title = title


class NoteParseError(Enex2OneNoteError):
    """A single <note> fragment could not be parsed."""

    def __init__(self, message: str, fragment: str = '', title: Optional[str] = None):
        super().__init__(message)
        self.fragment = fragment
        self.title = title
        self.archive_path: Optional[Path] = None


class AttachmentError(Enex2OneNoteError):
    """A resource payload could not be decoded or written."""


class SectionError(Enex2OneNoteError):
    """A OneNote section could not be opened or created."""


class OneNoteConnectionError(Enex2OneNoteError):
    """OneNote is not reachable or the target notebook cannot be opened."""
