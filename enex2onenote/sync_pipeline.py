#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Evernote2OneNote - Sync Driver
Imports every note of an Evernote export into OneNote, one note at a time,
reporting progress and honoring cancellation between notes
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Set

from .pipeline_base import (
    CancellationToken,
    FailedNoteArchive,
    SyncProgress,
    default_temp_root,
    full_progress,
    log_pipeline_start,
    log_sync_summary,
)
from .errors import ExportStreamError, OneNoteConnectionError
from .models import Note, NoteFailure, ProgressUpdate, SyncResult, SyncStep
from .destination import SectionMapper, open_notebook
from .onenote_client import OneNoteApplication
from .extractors.enex_parser import EnexNoteParser, iter_note_fragments
from .extractors.attachment_resolver import AttachmentResolver
from .converters.body_transformer import prepare_page_body, transform_body
from .converters.page_builder import build_page_xml


@dataclass
class SyncOptions:
    """Settings for one import run."""
    export_path: Path
    notebook_name: Optional[str] = None
    cutoff_date: Optional[datetime] = None
    use_modified_date: bool = False
    temp_root: Path = field(default_factory=default_temp_root)

    def __post_init__(self):
        self.export_path = Path(self.export_path)
        self.temp_root = Path(self.temp_root)
        if not self.notebook_name:
            self.notebook_name = self.export_path.stem
        # Note dates are UTC; a naive cutoff is taken as UTC too
        if self.cutoff_date is not None and self.cutoff_date.tzinfo is None:
            self.cutoff_date = self.cutoff_date.replace(tzinfo=timezone.utc)


class SyncState:
    """Sync step that only ever moves forward."""

    def __init__(self):
        self.step = SyncStep.START

    def advance(self):
        if self.step < SyncStep.FINISHED:
            self.step = SyncStep(self.step + 1)

    def advance_to(self, step: SyncStep):
        if step < self.step:
            raise ValueError(f"Cannot go back from {self.step.name} to {step.name}")
        self.step = step


class SyncDriver:
    """Run the Evernote to OneNote import."""

    def __init__(self, options: SyncOptions, onenote_factory=OneNoteApplication,
                 progress: Optional[SyncProgress] = None,
                 cancel_token: Optional[CancellationToken] = None):
        """
        Args:
            options: Run settings
            onenote_factory: Callable returning a context manager that yields
                a connected OneNote client
            progress: Where progress updates are published
            cancel_token: Token the UI sets to stop after the current note
        """
        self.options = options
        self.onenote_factory = onenote_factory
        self.progress = progress or SyncProgress()
        self.cancel_token = cancel_token or CancellationToken()
        self.state = SyncState()
        self.result: Optional[SyncResult] = None
        self.parser = EnexNoteParser(options.use_modified_date)
        self.resolver = AttachmentResolver(options.temp_root)
        self.archive = FailedNoteArchive(options.temp_root)
        self.logger = logging.getLogger('SyncDriver')
        self._last_title: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.cancelled

    def start(self) -> threading.Thread:
        """Run the import on a worker thread; the result lands in self.result."""
        worker = threading.Thread(target=self.run, name='evernote2onenote-sync', daemon=True)
        worker.start()
        return worker

    def set_info(self, line1: Optional[str], line2: Optional[str], position: int, maximum: int):
        """
        Publish progress for the current step.

        A report with maximum == 0 means the step is done and moves the
        state machine to the next step.
        """
        step = self.state.step
        self.progress.publish(ProgressUpdate(
            step=step,
            line1=line1,
            line2=line2,
            position=position,
            maximum=maximum,
            full_position=full_progress(step, position, maximum)
        ))
        if maximum == 0:
            self.state.advance()

    def run(self) -> SyncResult:
        """
        Import the export file into OneNote.

        Returns:
            SyncResult with status 'finished', 'cancelled' or 'failed'
        """
        result = SyncResult()
        self.result = result
        self.state = SyncState()
        self._last_title = None
        notebook_name = self.options.notebook_name

        log_pipeline_start(self.logger, notebook_name, self.options.export_path)

        try:
            with self.onenote_factory() as onenote:
                destination = open_notebook(onenote, notebook_name)
                mapper = SectionMapper(onenote, destination)
                self._sync(onenote, mapper, result)
        except OneNoteConnectionError as e:
            self.logger.error(f"OneNote connection failed: {e}")
            result.status = 'failed'
            result.error = str(e)
        except ExportStreamError as e:
            result.status = 'failed'
            result.error = self._describe_stream_error(e, notebook_name)
            self.logger.error(result.error)
        except Exception as e:
            self.logger.error(f"Exception importing notes: {e}", exc_info=True)
            result.status = 'failed'
            result.error = f"Exception importing notes: {e}"
        else:
            result.status = 'cancelled' if self.cancelled else 'finished'

        self._finish(result)
        log_sync_summary(self.logger, result)
        return result

    def _sync(self, onenote, mapper: SectionMapper, result: SyncResult):
        self.set_info("Parsing notes from Evernote", "", 0, 0)

        result.notes_found = self._count_notes()
        self.set_info(None, f"Found {result.notes_found} notes", 0, 0)
        if self.cancelled:
            return

        note_dates, failed = self._parse_notes(result)
        self.set_info(None, "", 0, 0)
        if self.cancelled:
            return

        selected = self._calculate_what_to_do(note_dates, result)
        self.set_info("Importing notes to OneNote", "", 0, 0)
        if self.cancelled:
            return

        self._import_notes(onenote, mapper, selected, failed, result)
        self.set_info(None, "", 0, 0)

    def _count_notes(self) -> int:
        """ExtractNotes: find every <note> in the export."""
        def on_progress(bytes_read: int, file_size: int):
            if file_size > 0:
                self.set_info(None, f"Reading export ({bytes_read} of {file_size} bytes)",
                              min(bytes_read, file_size), file_size)

        count = 0
        for _ in iter_note_fragments(self.options.export_path, self.cancel_token, on_progress):
            count += 1
        self.logger.info(f"Found {count} note(s) in {self.options.export_path.name}")
        return count

    def _parse_notes(self, result: SyncResult):
        """ParseNotes: read titles and dates, report notes that do not parse."""
        note_dates: Dict[int, datetime] = {}
        failed: Set[int] = set()
        total = max(result.notes_found, 1)

        for extracted in self.parser.iter_notes(self.options.export_path, self.cancel_token,
                                                archive=self.archive, with_attachments=False):
            self.set_info(None, f"Parsing note {extracted.index + 1} of {result.notes_found}",
                          min(extracted.index + 1, total), total)
            if extracted.error is not None:
                failed.add(extracted.index)
                error = extracted.error
                result.failures.append(NoteFailure(title=error.title, error=str(error),
                                                   stage='parse', archive_path=error.archive_path))
                continue
            self._last_title = extracted.note.title
            note_dates[extracted.index] = extracted.note.date

        return note_dates, failed

    def _calculate_what_to_do(self, note_dates: Dict[int, datetime], result: SyncResult) -> Set[int]:
        """CalculateWhatToDo: apply the cutoff date filter."""
        selected = set()
        total = max(len(note_dates), 1)
        for position, (index, date) in enumerate(sorted(note_dates.items()), 1):
            self.set_info(None, None, position, total)
            if self._is_before_cutoff(date):
                result.notes_skipped += 1
            else:
                selected.add(index)

        if result.notes_skipped:
            self.logger.info(f"Skipping {result.notes_skipped} note(s) older than {self.options.cutoff_date}")
        return selected

    def _import_notes(self, onenote, mapper: SectionMapper, selected: Set[int],
                      failed: Set[int], result: SyncResult):
        """ImportNotes: fully parse each selected note and create its pages."""
        upload_count = len(selected)
        counter = 0

        for extracted in self.parser.iter_notes(self.options.export_path, self.cancel_token):
            if self.cancelled:
                break
            if extracted.index in failed:
                continue

            if extracted.error is not None:
                # Only resource payloads are decoded in this pass
                error = extracted.error
                failed.add(extracted.index)
                self._record_failure(result, 'parse', error.title, error, extracted.fragment)
                continue

            note = extracted.note
            if extracted.index not in selected or self._is_before_cutoff(note.date):
                continue

            self._last_title = note.title
            self.set_info(None, f"Importing note ({counter + 1} of {upload_count}) : \"{note.title}\"",
                          counter, upload_count)
            counter += 1

            try:
                result.pages_created += self.import_note(onenote, mapper, note)
                result.notes_imported += 1
            except Exception as e:
                self._record_failure(result, 'import', note.title, e, extracted.fragment)

    def import_note(self, onenote, mapper: SectionMapper, note: Note) -> int:
        """
        Create the OneNote page(s) for one note.

        Returns:
            Number of pages created
        """
        resolved = self.resolver.resolve(note)
        try:
            body = prepare_page_body(transform_body(resolved.body), note.date)
            section_ids = mapper.sections_for(note)

            for section_id in section_ids:
                page_id = onenote.create_page(section_id)
                page_xml = build_page_xml(
                    page_id=page_id,
                    title=note.title,
                    body=body,
                    inserted_files=resolved.inserted_files_xml,
                    source_url=note.source_url,
                    date=note.date
                )
                onenote.update_page_content(page_xml)
                onenote.sync_hierarchy(page_id)

            self.logger.info(f"Imported \"{note.title}\" into {len(section_ids)} section(s)")
            return len(section_ids)
        finally:
            self.resolver.cleanup(resolved)

    def _is_before_cutoff(self, date: datetime) -> bool:
        cutoff = self.options.cutoff_date
        return cutoff is not None and date < cutoff

    def _record_failure(self, result: SyncResult, stage: str, title: Optional[str],
                        error: Exception, fragment: str):
        archive_path = self.archive.save(fragment)
        result.failures.append(NoteFailure(title=title, error=str(error), stage=stage,
                                           archive_path=archive_path))
        location = f" A copy of the note is left in {archive_path}." if archive_path else ""
        self.logger.error(f"Note: {title}\n{error}{location}")

    def _describe_stream_error(self, error: ExportStreamError, notebook_name: str) -> str:
        archive_path = self.archive.save(error.fragment) if error.fragment else None
        title = error.title or self._last_title
        if title:
            message = f"Error parsing the note \"{title}\" in notebook \"{notebook_name}\": {error}"
        else:
            message = f"Error parsing the notebook \"{notebook_name}\": {error}"
        if archive_path:
            message += f". A copy of the note is left in {archive_path}"
        return message

    def _finish(self, result: SyncResult):
        self.state.advance_to(SyncStep.FINISHED)
        line2 = "Operation cancelled" if result.status == 'cancelled' else (result.error or "")
        self.progress.publish(ProgressUpdate(
            step=SyncStep.FINISHED,
            line1="Finished",
            line2=line2,
            position=0,
            maximum=0,
            full_position=full_progress(SyncStep.FINISHED, 0, 0)
        ))
