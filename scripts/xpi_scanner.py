#!/usr/bin/env python3
"""
XPI Archive Scanner
Walks the entries of an add-on archive and picks out manifest.json and the
signature marker without extracting anything else.
"""

import json
import logging
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from xpi_errors import (
    ArchiveMissingManifestError,
    ArchiveReadError,
    DescriptorParseError,
    IdentityMissingError,
)

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
SIGNATURE_MARKER = "META-INF/mozilla.sf"

# Platform blocks that may carry the add-on id, in lookup order
ID_BLOCKS = ("applications", "browser_specific_settings")

# What zipfile raises for an entry it cannot decompress: CRC mismatch,
# encryption, unsupported compression, truncated data
READ_ERRORS = (zipfile.BadZipFile, zlib.error, OSError, RuntimeError,
               NotImplementedError, EOFError)


@dataclass
class ExtensionDescriptor:
    """Identity of the add-on packaged in an archive"""
    id: str
    version: str


@dataclass
class ScanResult:
    """What the scanner found in one archive"""
    manifest: Optional[bytes] = None
    signed: bool = False
    entries: int = 0


class ArchiveEntry:
    """One named entry of an archive whose content is only read on demand"""

    def __init__(self, archive: zipfile.ZipFile, info: zipfile.ZipInfo):
        self._archive = archive
        self._info = info
        self.path = info.filename

    def read(self) -> bytes:
        """Buffer the whole entry content."""
        chunks = []
        with self._archive.open(self._info) as stream:
            for chunk in iter(lambda: stream.read(64 * 1024), b''):
                chunks.append(chunk)
        return b''.join(chunks)

    def drain(self) -> None:
        """Skip the entry; its content is never decompressed."""


def iter_entries(path: Union[str, Path]) -> Iterator[ArchiveEntry]:
    """
    Lazily yield the entries of a zip-format archive

    Args:
        path: Path to the archive

    Yields:
        ArchiveEntry for each member, in archive order

    Raises:
        ArchiveReadError: If the file cannot be opened or is not a zip container
    """
    try:
        with zipfile.ZipFile(path) as archive:
            for info in archive.infolist():
                yield ArchiveEntry(archive, info)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as e:
        raise ArchiveReadError(f"Could not read archive {path}: {e}") from e


def scan_archive(path: Union[str, Path],
                 manifest_name: str = MANIFEST_NAME,
                 signature_marker: str = SIGNATURE_MARKER) -> ScanResult:
    """
    Scan an archive for its manifest and signature marker

    The manifest entry is buffered, the marker is only noted as present and
    every other entry is drained.

    Args:
        path: Path to the archive
        manifest_name: Entry name of the extension descriptor
        signature_marker: Entry name whose presence means the archive is signed

    Returns:
        ScanResult with the raw manifest bytes (or None) and the signed flag
    """
    result = ScanResult()

    for entry in iter_entries(path):
        result.entries += 1
        if entry.path == manifest_name:
            try:
                result.manifest = entry.read()
            except READ_ERRORS as e:
                raise ArchiveReadError(f"Corrupt entry {entry.path} in {path}: {e}") from e
            logger.debug(f"Read {manifest_name} ({len(result.manifest)} bytes) from {path}")
        elif entry.path == signature_marker:
            result.signed = True
            entry.drain()
        else:
            entry.drain()

    # Archive closed
    if result.manifest is None:
        logger.error(f"No {manifest_name} found in {path}")
    if not result.signed:
        logger.warning(f"File {path} has not been signed by Mozilla")

    return result


def _find_addon_id(manifest: dict) -> Optional[str]:
    for block in ID_BLOCKS:
        settings = manifest.get(block)
        if not isinstance(settings, dict):
            continue
        gecko = settings.get("gecko")
        if isinstance(gecko, dict) and gecko.get("id"):
            return str(gecko["id"])
    return None


def parse_descriptor(raw: Optional[bytes]) -> ExtensionDescriptor:
    """
    Parse manifest.json content into an ExtensionDescriptor

    Args:
        raw: Buffered manifest.json bytes, or None when the entry was missing

    Returns:
        ExtensionDescriptor with id and version

    Raises:
        ArchiveMissingManifestError: If raw is None
        DescriptorParseError: If the content is not a JSON object with a version
        IdentityMissingError: If no gecko id is declared
    """
    if raw is None:
        raise ArchiveMissingManifestError(f"No {MANIFEST_NAME} found in archive")

    try:
        manifest = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DescriptorParseError(f"Could not parse manifest: {e}") from e

    if not isinstance(manifest, dict):
        raise DescriptorParseError("Could not parse manifest: root is not an object")

    version = manifest.get("version")
    if not isinstance(version, str) or not version:
        raise DescriptorParseError("Could not parse manifest: no version string")

    addon_id = _find_addon_id(manifest)
    if not addon_id:
        raise IdentityMissingError("Add-on id not found in manifest")

    return ExtensionDescriptor(id=addon_id, version=version)
