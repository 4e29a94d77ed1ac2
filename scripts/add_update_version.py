#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Add Update Version
Adds the version packaged in an .xpi archive to a Firefox add-on update.json.
"""

import argparse
import concurrent.futures
import json
import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from content_digest import submit_digest
from link_checker import check_update_link
from update_manifest import (
    MergeOutcome,
    VERSION_PLACEHOLDER,
    load_update_manifest,
    merge_version,
    save_update_manifest,
)
from xpi_errors import InputNotFoundError, UsageError, XpiUpdateError
from xpi_scanner import ExtensionDescriptor, parse_descriptor, scan_archive

# Set UTF-8 encoding for Windows console
if sys.platform == "win32":
    try:
        import codecs
        if hasattr(sys.stdout, "detach"):
            sys.stdout = codecs.getwriter("utf-8")(sys.stdout.detach())
        if hasattr(sys.stderr, "detach"):
            sys.stderr = codecs.getwriter("utf-8")(sys.stderr.detach())
    except Exception:
        os.environ.setdefault("PYTHONIOENCODING", "utf-8")

# Configuration
DEFAULT_UPDATE_LINK = os.environ.get('XPI_UPDATE_LINK') or None

# Logging configuration
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%H:%M:%S'

NOTES = f"""
Notes:
  When using the --update-link option, you can use the placeholder {VERSION_PLACEHOLDER} to be
  replaced by the new add-on version string.

  If former versions already exist in the original update.json, all the extra
  parameters (e.g {{"applications":{{"gecko":{{"strict_min_version":"..."}}}}}})
  from the latest version are re-used in the new entry.

  This is also the case for the update_link property, if not specified as command
  line parameter, with the version string being replaced in the url. For instance
  if a previous version "1.0.1" had update_link "https://mysite.com/download?v=1.0.1"
  and you add version "1.0.2" without specifying the update-link option, the new
  entry will automatically set update_link to "https://mysite.com/download?v=1.0.2".

Examples:
  add-update-version addon.xpi --update update.json --update-link "https://host/addon-{VERSION_PLACEHOLDER}.xpi"
  add-update-version addon.xpi --update-in update.json --update-out dist/update.json
"""


class RunState(Enum):
    SCANNING = "scanning"
    DIGESTING = "digesting"
    MERGING = "merging"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunReport:
    """Outcome of a successful run"""
    descriptor: ExtensionDescriptor
    signed: bool
    digest: str
    outcome: MergeOutcome
    output_path: Optional[Path] = None

    @property
    def written(self) -> bool:
        return self.output_path is not None


class UpdateRun:
    """Processes one archive: scan and hash it, merge the version, write the manifest"""

    def __init__(self, xpi_path, update_in=None, update_out=None,
                 update_link: Optional[str] = None, check_link: bool = False):
        self.xpi_path = Path(xpi_path) if xpi_path else None
        self.update_in = Path(update_in) if update_in else None
        self.update_out = Path(update_out) if update_out else None
        self.update_link = update_link
        self.check_link = check_link
        self.state: Optional[RunState] = None
        self.history: List[RunState] = []

    def _enter(self, state: RunState) -> None:
        logging.debug(f"{self.state.value if self.state else 'start'} -> {state.value}")
        self.state = state
        self.history.append(state)

    def execute(self) -> RunReport:
        """
        Run every step in order

        Returns:
            RunReport for the merged version

        Raises:
            XpiUpdateError: On any terminal condition; nothing is written then
        """
        try:
            return self._execute()
        except XpiUpdateError:
            self._enter(RunState.FAILED)
            raise

    def _execute(self) -> RunReport:
        if self.xpi_path is None:
            raise UsageError("No archive path given")
        if not self.xpi_path.is_file():
            raise InputNotFoundError(f"File {self.xpi_path} does not exist")

        document = load_update_manifest(self.update_in)

        # Scanner and digest read the archive through separate handles
        self._enter(RunState.SCANNING)
        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
            digest_future = submit_digest(executor, self.xpi_path)
            scan_future = executor.submit(scan_archive, self.xpi_path)
            try:
                scan = scan_future.result()
                descriptor = parse_descriptor(scan.manifest)
            except XpiUpdateError:
                digest_future.cancel()
                raise

            self._enter(RunState.DIGESTING)
            digest = digest_future.result()

        print(f"📦 {descriptor.id} version {descriptor.version}")
        print(f"🔍 Hash: sha256:{digest}")

        self._enter(RunState.MERGING)
        outcome = merge_version(document, descriptor.id, descriptor.version,
                                digest, self.update_link)
        print(f"🔗 Update link: {outcome.update_link}")

        if self.check_link and not check_update_link(outcome.update_link):
            logging.warning(f"Update link {outcome.update_link} is not reachable")
            print(f"⚠️  Update link not reachable: {outcome.update_link}")

        report = RunReport(descriptor=descriptor, signed=scan.signed,
                           digest=digest, outcome=outcome)

        if self.update_out is not None:
            self._enter(RunState.WRITING)
            report.output_path = save_update_manifest(document, self.update_out)
            print(f"💾 Update file written {report.output_path}")
        else:
            print("ℹ️  No update.json output path specified. "
                  "You may want to use option --update-out or --update")

        self._enter(RunState.DONE)
        return report


def resolve_update_paths(args: argparse.Namespace) -> Tuple[Optional[str], Optional[str]]:
    """--update sets both paths unless --update-in/--update-out are given."""
    return args.update_in or args.update, args.update_out or args.update


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging based on verbosity settings."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    # Override with environment variable if set
    if LOG_LEVEL != 'INFO':
        level = getattr(logging, LOG_LEVEL, logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="add-update-version",
        description="Add the version of an .xpi archive to a Firefox update.json file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=NOTES,
    )
    parser.add_argument("xpi", nargs="?",
                        help="Path to the .xpi archive")

    manifest_group = parser.add_argument_group('Update Manifest')
    manifest_group.add_argument("--update-in", metavar="PATH",
                                help="Path to original update.json file")
    manifest_group.add_argument("--update-out", metavar="PATH",
                                help="Path to update.json file to be created")
    manifest_group.add_argument("--update", metavar="PATH",
                                help="Shortcut to specify both --update-in and --update-out")
    manifest_group.add_argument("--update-link", metavar="URL", default=DEFAULT_UPDATE_LINK,
                                help=f"Update link to download new add-on version ({VERSION_PLACEHOLDER} is replaced by the version)")
    manifest_group.add_argument("--check-link", action="store_true",
                                help="Check that the resolved update link is reachable")

    parser.add_argument("--structured-output", action="store_true",
                        help="Print a final JSON line describing the result")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Reduce logging output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.quiet)

    update_in, update_out = resolve_update_paths(args)
    run = UpdateRun(args.xpi, update_in=update_in, update_out=update_out,
                    update_link=args.update_link, check_link=args.check_link)

    try:
        report = run.execute()
    except UsageError as e:
        parser.print_help()
        return e.exit_code
    except XpiUpdateError as e:
        logging.error(str(e))
        print(f"❌ {e}")
        if args.structured_output:
            print(json.dumps({"updated": False, "name": args.xpi, "error": type(e).__name__}))
        return e.exit_code

    if not report.signed:
        print(f"⚠️  {run.xpi_path} has not been signed by Mozilla")
    if report.outcome.replaced:
        print(f"♻️  Replaced existing entry for version {report.descriptor.version}")
    print(f"✅ {report.descriptor.id}: version {report.descriptor.version} added")

    if args.structured_output:
        print(json.dumps({
            "updated": report.written,
            "name": report.descriptor.id,
            "version": report.descriptor.version,
            "update_hash": report.outcome.entry["update_hash"],
            "update_link": report.outcome.update_link,
            "signed": report.signed,
        }))
    return 0


if __name__ == "__main__":
    sys.exit(main())
