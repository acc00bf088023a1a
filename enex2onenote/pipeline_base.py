#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Shared utilities for the Evernote to OneNote sync pipeline.
Logging setup, failed-note archive, cancellation and progress reporting.
"""

import sys
import uuid
import logging
import tempfile
import threading
from pathlib import Path
from datetime import datetime
from typing import Callable, Optional

from .models import ProgressUpdate, SyncResult, SyncStep

# Full progress scale used by the progress reports
PROGRESS_SCALE = 100000

# (offset, share) on the full scale for each step; 20-30% is unused
_STEP_RANGES = {
    SyncStep.EXTRACT_NOTES: (0, 10000),
    SyncStep.PARSE_NOTES: (10000, 10000),
    SyncStep.CALCULATE_WHAT_TO_DO: (30000, 5000),
    SyncStep.IMPORT_NOTES: (35000, 65000),
}


def setup_logging(log_dir: Path, logger_name: str) -> logging.Logger:
    """
    Set up logging configuration with UTF-8 encoding.

    Args:
        log_dir: Directory for log files
        logger_name: Name for the logger (e.g., 'Evernote2OneNote')

    Returns:
        Configured logger instance
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    log_file = log_dir / f'{logger_name.lower()}_{timestamp}.log'

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Set console output encoding to UTF-8 for Windows
    if sys.stdout.encoding != 'utf-8':
        try:
            sys.stdout.reconfigure(encoding='utf-8')
            sys.stderr.reconfigure(encoding='utf-8')
        except (AttributeError, OSError):
            pass

    return logging.getLogger(logger_name)


def default_temp_root() -> Path:
    """Per-user scratch directory for attachments and failed notes."""
    return Path(tempfile.gettempdir()) / 'ev2on'


def log_pipeline_start(logger: logging.Logger, notebook_name: str, export_path: Path):
    """
    Log the start of a sync run.

    Args:
        logger: Logger instance
        notebook_name: Name of the target OneNote notebook
        export_path: ENEX file being imported
    """
    logger.info("Evernote2OneNote - ENEX Import")
    logger.info("=" * 70)
    logger.info(f"Notebook: {notebook_name}")
    logger.info(f"Export File: {export_path}")


def log_sync_summary(logger: logging.Logger, result: SyncResult):
    """
    Log the final sync summary.

    Args:
        logger: Logger instance
        result: Result of the finished run
    """
    logger.info("=" * 70)
    logger.info(f"Sync {result.status}: {result.notes_imported}/{result.notes_found} notes imported, "
                f"{result.pages_created} page(s) created, {result.notes_skipped} skipped by date")

    for failure in result.failures:
        location = f" (copy left in {failure.archive_path})" if failure.archive_path else ""
        logger.warning(f"  Failed note \"{failure.title or 'unknown'}\": {failure.error}{location}")

    if result.error:
        logger.error(f"  {result.error}")


class CancellationToken:
    """Cooperative cancel flag, set by the UI thread and polled by the worker."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class FailedNoteArchive:
    """Keeps copies of notes that failed to parse or import for bug reports."""

    def __init__(self, temp_root: Path):
        self.directory = Path(temp_root) / 'failedNotes'
        self.logger = logging.getLogger('FailedNotes')

    def save(self, fragment: str) -> Optional[Path]:
        """
        Write a raw note fragment to the failed notes directory.

        Returns:
            Path of the written copy, or None if it could not be written
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path = self.directory / f"note-{uuid.uuid4()}.xml"
            path.write_text(fragment, encoding='utf-8')
            return path
        except OSError as e:
            self.logger.warning(f"Could not save failed note to {self.directory}: {e}")
            return None


def full_progress(step: SyncStep, position: int, maximum: int) -> int:
    """
    Map a step-local (position, maximum) onto the 0..100000 scale.

    maximum == 0 reports a finished step and maps to the end of its range.
    """
    if step == SyncStep.FINISHED:
        return PROGRESS_SCALE
    if step not in _STEP_RANGES:
        return 0
    offset, share = _STEP_RANGES[step]
    if maximum == 0:
        return offset + share
    return offset + position * share // maximum


class SyncProgress:
    """
    Latest-value progress holder shared between the worker and the UI.

    Later updates replace earlier ones; readers only ever see the newest.
    """

    def __init__(self, callback: Optional[Callable[[ProgressUpdate], None]] = None):
        self._lock = threading.Lock()
        self._latest: Optional[ProgressUpdate] = None
        self._callback = callback

    def publish(self, update: ProgressUpdate):
        with self._lock:
            # Keep the previous text lines when a report leaves them out
            if self._latest is not None:
                if update.line1 is None:
                    update.line1 = self._latest.line1
                if update.line2 is None:
                    update.line2 = self._latest.line2
            self._latest = update
        if self._callback is not None:
            self._callback(update)

    def latest(self) -> Optional[ProgressUpdate]:
        with self._lock:
            return self._latest
