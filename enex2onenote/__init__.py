#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
evernote2onenote - Import Evernote exports (.enex) into OneNote.

This package streams notes out of an Evernote export, repairs and parses
each note, rewrites its embedded resources and pushes one OneNote page per
note (and per tag) through the OneNote COM API.

Modules:
    - extractors: ENEX streaming, XML repair and attachment materialization
    - converters: text decoding, body normalization and page XML building
    - destination: notebook/section lookup in OneNote
    - onenote_client: OneNote COM wrapper
    - pipeline_base: logging, failed-note archive and progress reporting
    - sync_pipeline: the sync driver
"""

__version__ = "1.0.0"
__author__ = "Denis Darkin"
__license__ = "MIT"

__all__ = [
    "extractors",
    "converters",
    "destination",
    "onenote_client",
    "pipeline_base",
    "sync_pipeline",
]
