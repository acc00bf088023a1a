#!/usr/bin/env python3
# Copyright (c) 2025 Denis Darkin
# SPDX-License-Identifier: MIT
"""
Evernote2OneNote - Import Evernote exports (.enex) into OneNote

Usage:
    python evernote2onenote.py EXPORT.enex [options]

Examples:
    python evernote2onenote.py "Personal.enex"
    python evernote2onenote.py "Work.enex" --notebook "Work Archive"
    python evernote2onenote.py "Research.enex" --date 2020-01-01 --modified-date

Requirements:
    - Windows OS (OneNote COM API)
    - OneNote desktop (2013 or later)
    - Python 3.8+
"""

import sys
import time
import argparse
from datetime import datetime, timezone
from pathlib import Path

from enex2onenote.pipeline_base import (
    CancellationToken,
    SyncProgress,
    default_temp_root,
    setup_logging,
)
from enex2onenote.sync_pipeline import SyncDriver, SyncOptions

POLL_INTERVAL = 0.5


def check_platform():
    """Verify Windows platform."""
    if sys.platform != 'win32':
        print("ERROR: Windows required (OneNote COM API dependency)")
        print("   This tool uses OneNote's COM interface which only works on Windows.")
        return False
    return True


def check_python_version():
    """Verify Python 3.8+."""
    if sys.version_info < (3, 8):
        print(f"ERROR: Python 3.8+ required (you have {sys.version_info.major}.{sys.version_info.minor})")
        return False
    return True


def check_onenote():
    """Verify OneNote is accessible via COM."""
    try:
        import win32com.client
        onenote = win32com.client.Dispatch("OneNote.Application")
        del onenote
        print("OK: OneNote COM API accessible")
        return True
    except ImportError:
        print("ERROR: pywin32 not installed")
        print("   Install: pip install pywin32")
        return False
    except Exception as e:
        print("ERROR: Cannot access OneNote COM interface")
        print("   Is the OneNote desktop version installed?")
        print(f"   Details: {e}")
        return False


def check_requirements():
    """Run all requirement checks."""
    print("Evernote2OneNote - Checking requirements...")
    print("=" * 60)

    checks = [
        ("Platform", check_platform()),
        ("Python version", check_python_version()),
        ("OneNote COM", check_onenote()),
    ]

    all_passed = all(result for _, result in checks)

    print("=" * 60)
    if all_passed:
        print("All requirements met\n")
    else:
        print("Requirements not met. Please fix errors above.\n")

    return all_passed


def parse_date(value: str) -> datetime:
    """argparse type for --date (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS, UTC)."""
    try:
        date = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"The date string '{value}' is not valid")
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return date


def run_sync(options: SyncOptions) -> int:
    """Run the import on a worker thread and show its progress.

    Ctrl+C stops the import after the note currently being imported.
    """
    cancel_token = CancellationToken()
    progress = SyncProgress()
    driver = SyncDriver(options, progress=progress, cancel_token=cancel_token)

    worker = driver.start()
    last_shown = None
    try:
        while worker.is_alive():
            worker.join(POLL_INTERVAL)
            update = progress.latest()
            if update is not None and update.line2 != last_shown:
                last_shown = update.line2
                percent = update.full_position / 1000
                print(f"[{percent:5.1f}%] {update.line2 or update.line1 or ''}")
    except KeyboardInterrupt:
        print("\nCancelling after the current note...")
        cancel_token.cancel()
        worker.join()

    result = driver.result
    print("\n" + "=" * 60)
    if result is None or result.status == 'failed':
        print("FAILED: Check errors above")
        print("=" * 60)
        if result is not None and result.error:
            print(f"\n{result.error}")
        print("\nCommon issues:")
        print("  • OneNote not running or not accessible")
        print("  • OneNote running under a different user account")
        print("  • The export file is damaged or not an Evernote export")
        return 1

    print(f"{result.status.upper()}: {result.notes_imported} of {result.notes_found} notes imported")
    print("=" * 60)
    print(f"  Pages created:    {result.pages_created}")
    print(f"  Skipped by date:  {result.notes_skipped}")
    if result.failures:
        print(f"  Failed notes:     {len(result.failures)}")
        for failure in result.failures:
            print(f"    - {failure.title or 'unknown'}: {failure.error}")
            if failure.archive_path:
                print(f"      copy left in {failure.archive_path}")

    return 0 if not result.failures and result.status == 'finished' else 2


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Evernote2OneNote - Import Evernote exports into OneNote",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python evernote2onenote.py "Personal.enex"
    python evernote2onenote.py "Work.enex" --notebook "Work Archive"
    python evernote2onenote.py "Research.enex" --date 2020-01-01

Every tag of a note becomes a section in the target notebook; untagged
notes go to the section "not specified".
        """
    )

    parser.add_argument(
        'export',
        type=Path,
        help='Evernote export file (.enex)'
    )

    parser.add_argument(
        '--notebook',
        help='Target OneNote notebook name (default: export file name)'
    )

    parser.add_argument(
        '--date',
        type=parse_date,
        help='Only import notes dated on or after this date (YYYY-MM-DD, UTC)'
    )

    parser.add_argument(
        '--modified-date',
        action='store_true',
        help='Use the modification date instead of the creation date'
    )

    parser.add_argument(
        '--temp-dir',
        type=Path,
        default=default_temp_root(),
        help='Scratch directory for attachments and failed notes'
    )

    parser.add_argument(
        '--log-dir',
        type=Path,
        default=Path('./logs'),
        help='Log directory (default: ./logs)'
    )

    parser.add_argument(
        '--check-only',
        action='store_true',
        help='Only check requirements, do not import'
    )

    args = parser.parse_args()

    if not check_requirements():
        return 1

    if args.check_only:
        print("Requirements check passed. Ready to import.")
        return 0

    if not args.export.is_file():
        print(f"ERROR: Export file not found: {args.export}")
        return 1

    setup_logging(args.log_dir, 'Evernote2OneNote')

    options = SyncOptions(
        export_path=args.export,
        notebook_name=args.notebook,
        cutoff_date=args.date,
        use_modified_date=args.modified_date,
        temp_root=args.temp_dir
    )

    print(f"\nExport:   {options.export_path}")
    print(f"Notebook: {options.notebook_name}")
    if options.cutoff_date:
        print(f"Since:    {options.cutoff_date:%Y-%m-%d}")

    return run_sync(options)


if __name__ == '__main__':
    sys.exit(main())
