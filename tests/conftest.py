#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""Shared fixtures: ENEX builders and an in-memory OneNote."""

import re
import base64
import ntpath
import xml.etree.ElementTree as ET

import pytest

from enex2onenote.converters.page_builder import ONENOTE_NAMESPACE
from enex2onenote.onenote_client import CreateFileType, HierarchyScope, SpecialLocation

NS = {'one': ONENOTE_NAMESPACE}

ENML_PROLOG = ('<?xml version="1.0" encoding="UTF-8" standalone="no"?>\n'
               '<!DOCTYPE en-note SYSTEM "http://xml.evernote.com/pub/enml2.dtd">\n')

ENEX_HEADER = ('<?xml version="1.0" encoding="UTF-8"?>\n'
               '<!DOCTYPE en-export SYSTEM "http://xml.evernote.com/pub/evernote-export3.dtd">\n'
               '<en-export export-date="20200102T000000Z" application="Evernote" version="10.0">\n')


def make_resource(data: bytes, mime: str = 'image/png', file_name: str = None) -> str:
    encoded = base64.b64encode(data).decode('ascii')
    attributes = ''
    if file_name is not None:
        attributes = f'<resource-attributes><file-name>{file_name}</file-name></resource-attributes>'
    return (f'<resource><data encoding="base64">{encoded}</data>'
            f'<mime>{mime}</mime>{attributes}</resource>')


def make_note(title: str = 'Hello', content: str = '<en-note>Hi</en-note>', tags=(),
              created: str = '20200101T120000Z', updated: str = None,
              source_url: str = None, resources=()) -> str:
    parts = [f'<note><title>{title}</title>',
             f'<content><![CDATA[{ENML_PROLOG}{content}]]></content>']
    if created is not None:
        parts.append(f'<created>{created}</created>')
    if updated is not None:
        parts.append(f'<updated>{updated}</updated>')
    parts.extend(f'<tag>{tag}</tag>' for tag in tags)
    if source_url is not None:
        parts.append(f'<note-attributes><source-url>{source_url}</source-url></note-attributes>')
    parts.extend(resources)
    parts.append('</note>')
    return ''.join(parts)


def make_enex(*notes: str) -> str:
    return ENEX_HEADER + '\n'.join(notes) + '\n</en-export>\n'


@pytest.fixture
def write_enex(tmp_path):
    """Write an export file from note fragments and return its path."""
    def _write(*notes, name='Export.enex'):
        path = tmp_path / name
        path.write_text(make_enex(*notes), encoding='utf-8')
        return path
    return _write


class FakePage:
    def __init__(self, page_id, section_id):
        self.page_id = page_id
        self.section_id = section_id
        self.xml = None

    @property
    def root(self):
        return ET.fromstring(self.xml)

    @property
    def title(self):
        return self.root.find('one:Title/one:OE/one:T', NS).text

    @property
    def body(self):
        return self.root.find('.//one:HTMLBlock/one:Data', NS).text

    @property
    def inserted_files(self):
        return self.root.findall('one:InsertedFile', NS)


class FakeOneNote:
    """OneNote stand-in recording every call the importer makes."""

    DEFAULT_FOLDER = 'C:\\Users\\me\\Documents\\OneNote Notebooks'
    UNFILED_PATH = 'C:\\Users\\me\\Documents\\OneNote Notebooks\\Unfiled Notes.one'

    def __init__(self, fail_notebook=False, fail_unfiled=False, fail_titles=()):
        self.fail_notebook = fail_notebook
        self.fail_unfiled = fail_unfiled
        self.fail_titles = set(fail_titles)
        self.ids = {}
        self.pages = {}
        self.synced = []
        self.entered = False
        self.exited = False

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.exited = True
        return False

    def get_hierarchy(self, start_id, scope):
        if scope == HierarchyScope.NOTEBOOKS:
            return f'<one:Notebooks xmlns:one="{ONENOTE_NAMESPACE}"/>'
        return f'<one:Section xmlns:one="{ONENOTE_NAMESPACE}" ID="{start_id}" name="x"/>'

    def get_special_location(self, location):
        if location == SpecialLocation.DEFAULT_NOTEBOOK_FOLDER:
            return self.DEFAULT_FOLDER
        return self.UNFILED_PATH

    def open_hierarchy(self, path, relative_to_id="", create_type=CreateFileType.NONE):
        if create_type == CreateFileType.NOTEBOOK and self.fail_notebook:
            raise RuntimeError('notebook cannot be created')
        if create_type == CreateFileType.NONE and self.fail_unfiled:
            raise RuntimeError('unfiled section missing')
        if path not in self.ids:
            self.ids[path] = f'{{id-{len(self.ids) + 1}}}'
        return self.ids[path]

    def create_page(self, section_id, style=None):
        page_id = f'{{page-{len(self.pages) + 1}}}'
        self.pages[page_id] = FakePage(page_id, section_id)
        return page_id

    def update_page_content(self, xml, schema=None):
        page_id = re.search(r'<one:Page [^>]*ID="([^"]+)"', xml).group(1)
        title = ET.fromstring(xml).find('one:Title/one:OE/one:T', NS).text
        if title in self.fail_titles:
            raise RuntimeError(f'UpdatePageContent rejected "{title}"')
        self.pages[page_id].xml = xml

    def sync_hierarchy(self, object_id):
        self.synced.append(object_id)

    def section_name(self, section_id):
        for path, object_id in self.ids.items():
            if object_id == section_id:
                return ntpath.basename(path)
        return None

    def pages_in(self, section_file):
        return [page for page in self.pages.values()
                if self.section_name(page.section_id) == section_file and page.xml is not None]

    @property
    def written_pages(self):
        return [page for page in self.pages.values() if page.xml is not None]


@pytest.fixture
def onenote():
    return FakeOneNote()
