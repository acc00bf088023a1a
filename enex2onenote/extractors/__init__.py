#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
ENEX Extractors Module.

Provides the streaming reader and parser for Evernote exports and the
resolver that writes note resources to disk.

Available extractors:
    - EnexNoteParser: Parse <note> fragments into Note records
    - iter_note_fragments: Stream raw <note> fragments from an export
    - sanitize_note_xml: Repair known-bad text before parsing
    - AttachmentResolver: Materialize resources and rewrite references
"""

from .xml_sanitizer import sanitize_note_xml
from .enex_parser import EnexNoteParser, ExtractedNote, iter_note_fragments
from .attachment_resolver import AttachmentResolver, ResolvedNote

__all__ = [
    "EnexNoteParser",
    "ExtractedNote",
    "iter_note_fragments",
    "sanitize_note_xml",
    "AttachmentResolver",
    "ResolvedNote",
]
