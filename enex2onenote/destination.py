#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Where imported notes go in OneNote.

The export becomes a notebook named after it (or the "Unfiled Notes"
section when that notebook cannot be created), and every tag becomes a
section of that notebook. A note with several tags is imported once per
tag; untagged notes go to the "not specified" section.
"""

import ntpath
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import OneNoteConnectionError, SectionError
from .models import Note
from .onenote_client import CreateFileType, HierarchyScope, SpecialLocation

NOT_SPECIFIED_SECTION = 'not specified'

# Characters OneNote does not allow in section names
_SECTION_NAME_STRIP = '?*/\\:<>|&#%'

_HIERARCHY_NODES = {'Notebook', 'SectionGroup', 'Section', 'Page'}
_HIERARCHY_CONTAINERS = {'Notebooks', 'Notebook', 'SectionGroup', 'Section'}

logger = logging.getLogger('Destination')


@dataclass
class Destination:
    """The notebook (or unfiled section) opened for this run."""
    notebook_path: str
    notebook_id: Optional[str] = None
    use_unfiled_section: bool = False
    unfiled_section_id: Optional[str] = None


def normalize_section_name(name: str) -> str:
    """Strip characters OneNote rejects in section names."""
    for char in _SECTION_NAME_STRIP:
        name = name.replace(char, '')
    return name.replace('"', "'")


def describe_hierarchy(hierarchy_xml: str, highlight_path: Optional[str] = None) -> str:
    """
    Render a OneNote hierarchy document as indented lines for the log.

    Each line is '<level> <kind> <id> <name>'; the section whose path is
    highlight_path is listed with the id 'UnfiledNotes'.
    """
    try:
        root = ET.fromstring(hierarchy_xml)
    except ET.ParseError as e:
        return f"<unreadable hierarchy: {e}>"

    lines = []

    def walk(node, level: int):
        kind = node.tag.split('}')[-1]
        if kind in _HIERARCHY_NODES:
            node_id = node.attrib.get('ID', '')
            if kind == 'Section' and highlight_path and node.attrib.get('path') == highlight_path:
                node_id = 'UnfiledNotes'
            lines.append(f"{level} {kind} {node_id} {node.attrib.get('name', '')}")
        if kind in _HIERARCHY_CONTAINERS:
            next_level = level if kind == 'Notebooks' else level + 1
            for child in node:
                walk(child, next_level)

    walk(root, 0)
    return '\n'.join(lines)


def open_notebook(onenote, notebook_name: str) -> Destination:
    """
    Open or create the target notebook, falling back to Unfiled Notes.

    Args:
        onenote: Connected OneNoteApplication
        notebook_name: Name of the notebook to create in the default notebook folder

    Returns:
        Destination describing where sections and pages are created

    Raises:
        OneNoteConnectionError: If neither the notebook nor the Unfiled Notes section can be opened
    """
    try:
        hierarchy = onenote.get_hierarchy("", HierarchyScope.NOTEBOOKS)
        folder = onenote.get_special_location(SpecialLocation.DEFAULT_NOTEBOOK_FOLDER)
        notebook_path = ntpath.join(folder, notebook_name)
        notebook_id = onenote.open_hierarchy(notebook_path, "", CreateFileType.NOTEBOOK)
        onenote.get_hierarchy(notebook_id, HierarchyScope.PAGES)
    except Exception as e:
        logger.warning(f"Could not open notebook '{notebook_name}', using Unfiled Notes instead: {e}")
    else:
        logger.info(f"Importing into notebook {notebook_path}")
        logger.debug(f"Notebooks:\n{describe_hierarchy(hierarchy)}")
        return Destination(notebook_path=notebook_path, notebook_id=notebook_id)

    try:
        onenote.get_hierarchy("", HierarchyScope.PAGES)
        unfiled_path = onenote.get_special_location(SpecialLocation.UNFILED_NOTES_SECTION)
        section_id = onenote.open_hierarchy(unfiled_path, "")
        onenote.get_hierarchy(section_id, HierarchyScope.PAGES)
    except Exception as e:
        raise OneNoteConnectionError(f"Could not create the target notebook in OneNote: {e}") from e

    logger.info(f"Importing into Unfiled Notes section {unfiled_path}")
    return Destination(notebook_path=unfiled_path, use_unfiled_section=True,
                       unfiled_section_id=section_id)


class SectionMapper:
    """Resolve the sections a note is imported into, creating them on demand."""

    def __init__(self, onenote, destination: Destination):
        self.onenote = onenote
        self.destination = destination
        self.sections: Dict[str, str] = {}
        self.logger = logging.getLogger('SectionMapper')

    def sections_for(self, note: Note) -> List[str]:
        """
        Section ids for a note: one per tag, or the single fallback section.

        Raises:
            SectionError: If any of the sections cannot be opened
        """
        if self.destination.use_unfiled_section:
            if not self.destination.unfiled_section_id:
                raise SectionError("Unfiled Notes section has no id")
            return [self.destination.unfiled_section_id]

        if note.tags:
            return [self.get_section(tag) for tag in note.tags]

        return [self.get_section(NOT_SPECIFIED_SECTION)]

    def get_section(self, name: str) -> str:
        """Open or create the section <notebook>\\<name>.one and return its id."""
        name = normalize_section_name(name) or NOT_SPECIFIED_SECTION
        if name in self.sections:
            return self.sections[name]

        section_path = ntpath.join(self.destination.notebook_path, f"{name}.one")
        try:
            section_id = self.onenote.open_hierarchy(section_path, "", CreateFileType.SECTION)
            hierarchy = self.onenote.get_hierarchy(section_id, HierarchyScope.SECTIONS)
        except Exception as e:
            raise SectionError(f"Could not open or create section '{name}': {e}") from e

        if not section_id:
            raise SectionError(f"OneNote returned no id for section '{name}'")

        self.logger.info(f"Using section '{name}'")
        self.logger.debug(f"Section hierarchy:\n{describe_hierarchy(hierarchy)}")
        self.sections[name] = section_id
        return section_id
