#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Note Converters Module.

Provides converters for turning parsed Evernote content into the HTML
and page XML that OneNote imports.

Available converters:
    - text_decoder: HTML entity and RFC 2047 decoding, XML escaping
    - body_transformer: ENML body to standalone HTML
    - page_builder: OneNote page XML assembly
"""

__all__ = [
    "text_decoder",
    "body_transformer",
    "page_builder",
]
