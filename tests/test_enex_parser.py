#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
import base64
import codecs
import hashlib
from datetime import datetime, timezone

import pytest

from conftest import ENEX_HEADER, make_enex, make_note, make_resource
from enex2onenote.errors import ExportStreamError, NoteParseError
from enex2onenote.extractors.enex_parser import (
    EnexNoteParser,
    guess_note_title,
    iter_note_fragments,
)
from enex2onenote.models import ZERO_DATE
from enex2onenote.pipeline_base import CancellationToken, FailedNoteArchive


class TestNoteFragments:
    def test_fragments_in_order(self, write_enex):
        path = write_enex(make_note('One'), make_note('Two'), make_note('Three'))
        fragments = list(iter_note_fragments(path))
        assert [guess_note_title(f) for f in fragments] == ['One', 'Two', 'Three']
        assert all(f.startswith('<note>') and f.endswith('</note>') for f in fragments)

    @pytest.mark.parametrize('chunk_size', [1, 3, 7, 64])
    def test_small_chunks(self, write_enex, chunk_size):
        notes = [make_note('Grüße'), make_note('Two', tags=['a', 'b'])]
        path = write_enex(*notes)
        assert list(iter_note_fragments(path, chunk_size=chunk_size)) == notes

    def test_cdata_with_closing_tag(self, write_enex):
        note = make_note('Tricky', content='<en-note>see </note> and <note> here</en-note>')
        path = write_enex(note, make_note('After'))
        fragments = list(iter_note_fragments(path, chunk_size=5))
        assert fragments == [note, make_note('After')]

    def test_restartable(self, write_enex):
        path = write_enex(make_note('One'), make_note('Two'))
        assert list(iter_note_fragments(path)) == list(iter_note_fragments(path))

    def test_byte_order_mark(self, tmp_path):
        path = tmp_path / 'bom.enex'
        path.write_bytes(codecs.BOM_UTF8 + make_enex(make_note('One')).encode('utf-8'))
        assert len(list(iter_note_fragments(path))) == 1

    def test_empty_export(self, write_enex):
        assert list(iter_note_fragments(write_enex())) == []

    def test_progress(self, write_enex):
        path = write_enex(make_note('One'))
        reports = []
        list(iter_note_fragments(path, on_progress=lambda done, size: reports.append((done, size)),
                                 chunk_size=50))
        size = path.stat().st_size
        assert reports[-1] == (size, size)
        assert [done for done, _ in reports] == sorted(done for done, _ in reports)

    def test_cancelled(self, write_enex):
        token = CancellationToken()
        token.cancel()
        path = write_enex(make_note('One'))
        assert list(iter_note_fragments(path, token)) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(ExportStreamError):
            list(iter_note_fragments(tmp_path / 'missing.enex'))

    def test_no_export_root(self, tmp_path):
        path = tmp_path / 'other.xml'
        path.write_text('<?xml version="1.0"?><something/>', encoding='utf-8')
        with pytest.raises(ExportStreamError, match='en-export'):
            list(iter_note_fragments(path))

    def test_note_outside_root(self, tmp_path):
        path = tmp_path / 'bare.xml'
        path.write_text(make_note('Loose'), encoding='utf-8')
        with pytest.raises(ExportStreamError):
            list(iter_note_fragments(path))

    def test_unterminated_note(self, tmp_path):
        path = tmp_path / 'cut.enex'
        path.write_text(ENEX_HEADER + make_note('Complete') + '<note><title>Broken</title><content>',
                        encoding='utf-8')
        fragments = iter_note_fragments(path)
        assert guess_note_title(next(fragments)) == 'Complete'
        with pytest.raises(ExportStreamError) as info:
            next(fragments)
        assert info.value.title == 'Broken'
        assert info.value.fragment.startswith('<note><title>Broken')

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / 'latin1.enex'
        path.write_bytes(make_enex(make_note('caf\u00e9')).encode('latin-1'))
        with pytest.raises(ExportStreamError, match='UTF-8'):
            list(iter_note_fragments(path))


class TestEnexNoteParser:
    def setup_method(self):
        self.parser = EnexNoteParser()

    def test_basic_fields(self):
        note = self.parser.parse_note(make_note('Hello', content='<en-note>Hi</en-note>'))
        assert note.title == 'Hello'
        assert note.content.endswith('<en-note>Hi</en-note>')
        assert note.tags == []
        assert note.date == datetime(2020, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert note.source_url is None
        assert note.attachments == []

    def test_raw_ampersand_title(self):
        assert self.parser.parse_note(make_note('Fish & Chips')).title == 'Fish & Chips'

    def test_encoded_title(self):
        assert self.parser.parse_note(make_note('=?utf-8?B?SGVsbG8=?=')).title == 'Hello'

    def test_tags_keep_order_without_duplicates(self):
        note = self.parser.parse_note(make_note(tags=['work', 'home', 'work', 'R&amp;D']))
        assert note.tags == ['work', 'home', 'R&D']

    def test_modified_date_is_opt_in(self):
        fragment = make_note(created='20200101T120000Z', updated='20210601T080000Z')
        assert self.parser.parse_note(fragment).date == datetime(2020, 1, 1, 12, tzinfo=timezone.utc)
        modified = EnexNoteParser(use_modified_date=True).parse_note(fragment)
        assert modified.date == datetime(2021, 6, 1, 8, tzinfo=timezone.utc)

    @pytest.mark.parametrize('created', [None, 'yesterday'])
    def test_missing_or_bad_date(self, created):
        assert self.parser.parse_note(make_note(created=created)).date == ZERO_DATE

    @pytest.mark.parametrize('url, expected', [
        ('https://example.com/article', 'https://example.com/article'),
        ('file:///C:/Users/me/page.html', None),
        ('en-cache://tokenKey=abc', None),
    ])
    def test_source_url(self, url, expected):
        assert self.parser.parse_note(make_note(source_url=url)).source_url == expected

    def test_attachments(self):
        image = b'\x89PNG fake image'
        pdf = b'%PDF-1.4 fake'
        fragment = make_note(resources=[
            make_resource(image, 'image/png', 'photo.png'),
            make_resource(pdf, 'application/pdf', 'a & b.pdf'),
        ])
        first, second = self.parser.parse_note(fragment).attachments

        assert first.hash == hashlib.md5(image).hexdigest()
        assert first.file_name == 'photo.png'
        assert first.content_type == 'image/png'
        assert first.is_image
        assert base64.b64decode(first.base64_data) == image

        assert second.hash == hashlib.md5(pdf).hexdigest()
        assert second.file_name == 'a &amp; b.pdf'
        assert not second.is_image

    def test_wrapped_base64(self):
        data = bytes(range(256)) * 4
        encoded = base64.encodebytes(data).decode('ascii')
        fragment = make_note(resources=[
            f'<resource><data encoding="base64">{encoded}</data><mime>image/gif</mime></resource>'
        ])
        attachment = self.parser.parse_note(fragment).attachments[0]
        assert attachment.hash == hashlib.md5(data).hexdigest()
        assert attachment.file_name is None

    def test_same_payload_same_hash(self):
        fragment = make_note(resources=[make_resource(b'same bytes')])
        first = self.parser.parse_note(fragment).attachments[0]
        second = self.parser.parse_note(make_note('Other', resources=[make_resource(b'same bytes')]))
        assert first.hash == second.attachments[0].hash

    def test_without_attachments(self):
        fragment = make_note(resources=[make_resource(b'data')])
        assert self.parser.parse_note(fragment, with_attachments=False).attachments == []

    def test_invalid_base64(self):
        fragment = make_note('Bad data', resources=[
            '<resource><data encoding="base64">abc</data><mime>image/png</mime></resource>'
        ])
        with pytest.raises(NoteParseError) as info:
            self.parser.parse_note(fragment)
        assert info.value.title == 'Bad data'

    def test_invalid_xml(self):
        fragment = '<note><title>Broken</title><content><b>x</content></note>'
        with pytest.raises(NoteParseError) as info:
            self.parser.parse_note(fragment)
        assert info.value.title == 'Broken'
        assert info.value.fragment == fragment


class TestIterNotes:
    def test_bad_note_does_not_stop_the_rest(self, write_enex, tmp_path):
        path = write_enex(
            make_note('First'),
            '<note><title>Broken</title><content><b>x</content></note>',
            make_note('Third'),
        )
        archive = FailedNoteArchive(tmp_path / 'temp')
        results = list(EnexNoteParser().iter_notes(path, archive=archive))

        assert [r.index for r in results] == [0, 1, 2]
        assert results[0].note.title == 'First'
        assert results[2].note.title == 'Third'
        assert results[1].note is None
        assert results[1].error.title == 'Broken'

        archived = list(archive.directory.glob('note-*.xml'))
        assert archived == [results[1].error.archive_path]
        assert 'Broken' in archived[0].read_text(encoding='utf-8')
