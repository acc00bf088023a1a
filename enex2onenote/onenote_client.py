#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
OneNote COM client - the destination side of the import
Thin wrapper over the OneNote.Application automation object
"""

import logging
from enum import IntEnum

try:
    import pythoncom
    import win32com.client
    COM_AVAILABLE = True
except ImportError:
    COM_AVAILABLE = False

from .errors import OneNoteConnectionError


class HierarchyScope(IntEnum):
    SELF = 0
    CHILDREN = 1
    NOTEBOOKS = 2
    SECTIONS = 3
    PAGES = 4


class SpecialLocation(IntEnum):
    BACKUP_FOLDER = 0
    UNFILED_NOTES_SECTION = 1
    DEFAULT_NOTEBOOK_FOLDER = 2


class CreateFileType(IntEnum):
    NONE = 0
    NOTEBOOK = 1
    FOLDER = 2
    SECTION = 3


class NewPageStyle(IntEnum):
    DEFAULT = 0
    BLANK_PAGE_WITH_TITLE = 1
    BLANK_PAGE_NO_TITLE = 2


class XMLSchema(IntEnum):
    XS_2007 = 0
    XS_2010 = 1
    XS_2013 = 2


class OneNoteApplication:
    """
    OneNote automation connection, owned by the sync worker for one run.

    Use as a context manager: COM is initialized for the calling thread on
    entry and the application object is released on exit.
    """

    def __init__(self):
        self.onenote = None
        self.logger = logging.getLogger('OneNote')

    def __enter__(self):
        """Context manager entry - initialize OneNote COM object."""
        if not COM_AVAILABLE:
            raise OneNoteConnectionError("pywin32 not available - cannot use OneNote COM API")

        pythoncom.CoInitialize()
        try:
            self.onenote = win32com.client.Dispatch("OneNote.Application")
        except Exception as e:
            pythoncom.CoUninitialize()
            raise OneNoteConnectionError(
                "Could not connect to OneNote. The desktop version of OneNote may not be "
                "installed, or OneNote is already running under a different user account: "
                f"{e}"
            ) from e

        self.logger.info("OneNote COM interface initialized")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - release COM object."""
        if self.onenote is not None:
            self.onenote = None
            pythoncom.CoUninitialize()
            self.logger.info("OneNote COM interface released")

    def _app(self):
        if self.onenote is None:
            raise RuntimeError("OneNote COM interface not initialized")
        return self.onenote

    # Out parameters of the COM methods come back as return values; the
    # empty strings below are placeholders for them.

    def get_hierarchy(self, start_id: str, scope: HierarchyScope) -> str:
        return self._app().GetHierarchy(start_id, int(scope))

    def get_special_location(self, location: SpecialLocation) -> str:
        return self._app().GetSpecialLocation(int(location))

    def open_hierarchy(self, path: str, relative_to_id: str = "",
                       create_type: CreateFileType = CreateFileType.NONE) -> str:
        return self._app().OpenHierarchy(path, relative_to_id, "", int(create_type))

    def create_page(self, section_id: str,
                    style: NewPageStyle = NewPageStyle.BLANK_PAGE_WITH_TITLE) -> str:
        return self._app().CreateNewPage(section_id, "", int(style))

    def update_page_content(self, page_xml: str, schema: XMLSchema = XMLSchema.XS_2013):
        # 0 for dateExpectedLastModified skips the concurrent-edit check
        self._app().UpdatePageContent(page_xml, 0, int(schema), True)

    def sync_hierarchy(self, hierarchy_id: str):
        self._app().SyncHierarchy(hierarchy_id)
