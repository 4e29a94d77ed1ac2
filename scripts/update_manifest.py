#!/usr/bin/env python3
"""
Update Manifest Merging
Reads, merges and writes the update.json document that Firefox polls to
discover new add-on versions:

    {"addons": {"<id>": {"updates": [{"version": ..., "update_hash": ...,
                                      "update_link": ..., ...}]}}}

A new entry copies every field of the current latest entry (e.g.
"applications": {"gecko": {"strict_min_version": "..."}}) and overrides
version, update_hash and update_link.
"""

import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from functools import reduce
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import quote

from version_compare import compare
from xpi_errors import LinkUnresolvableError, OutputWriteError

logger = logging.getLogger(__name__)

VERSION_PLACEHOLDER = "@version@"
HASH_PREFIX = "sha256:"
JSON_INDENT = 4

# Characters encodeURIComponent leaves untouched besides alphanumerics
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass
class MergeOutcome:
    """Result of merging one version into the update manifest"""
    addon_id: str
    entry: Dict[str, Any]
    latest: Optional[Dict[str, Any]]
    replaced: int
    update_link: str


def empty_manifest() -> Dict[str, Any]:
    return {"addons": {}}


def percent_encode(value: str) -> str:
    """Percent-encode a string the way a URI component is encoded."""
    return quote(value, safe=_URI_COMPONENT_SAFE)


def fold_updates(updates: List[Dict[str, Any]],
                 new_version: str) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]], int]:
    """
    Single pass over existing entries

    Entries that are not JSON objects are kept as they are and never serve
    as the latest entry.

    Args:
        updates: Existing entries of one add-on, in file order
        new_version: Version about to be added

    Returns:
        (kept, latest, replaced): entries whose version differs from new_version,
        the first entry holding the highest version (None if there are no
        entries), and how many entries were dropped for sharing new_version
    """
    def step(acc, entry):
        kept, latest, replaced = acc
        if not isinstance(entry, dict):
            kept.append(entry)
            return kept, latest, replaced
        if latest is None or compare(entry.get("version"), latest.get("version")) > 0:
            latest = entry
        if entry.get("version") == new_version:
            return kept, latest, replaced + 1
        kept.append(entry)
        return kept, latest, replaced

    return reduce(step, updates, ([], None, 0))


def resolve_update_link(new_version: str,
                        latest: Optional[Dict[str, Any]],
                        link_template: Optional[str] = None) -> str:
    """
    Work out the update_link of the new entry

    Args:
        new_version: Version being added
        latest: Current latest entry, if any
        link_template: Explicit URL, may contain @version@

    Returns:
        The download URL for new_version

    Raises:
        LinkUnresolvableError: No template given and nothing to reuse
    """
    encoded = percent_encode(new_version)

    if link_template:
        return link_template.replace(VERSION_PLACEHOLDER, encoded)

    former_link = (latest or {}).get("update_link")
    if not former_link or not isinstance(former_link, str):
        raise LinkUnresolvableError(
            "No update URL specified nor reused. Try using parameter --update-link")

    former_encoded = percent_encode(str(latest.get("version", "")))
    if former_encoded and former_encoded in former_link:
        update_link = former_link.replace(former_encoded, encoded, 1)
    else:
        # Version not part of the URL, reuse it as is
        logger.debug(f"Former version {former_encoded!r} not found in {former_link}")
        update_link = former_link

    logger.info(f"Reusing former update URL {former_link} => {update_link}")
    return update_link


def build_entry(latest: Optional[Dict[str, Any]], new_version: str,
                digest_hex: str, update_link: str) -> Dict[str, Any]:
    entry = dict(latest or {})
    entry.update({
        "version": new_version,
        "update_hash": f"{HASH_PREFIX}{digest_hex}",
        "update_link": update_link,
    })
    return entry


def merge_version(document: Dict[str, Any], addon_id: str, new_version: str,
                  digest_hex: str, link_template: Optional[str] = None) -> MergeOutcome:
    """
    Add (or replace) one version entry in an update manifest

    The document is left untouched when the update link cannot be resolved.
    The new entry is appended last regardless of version order.

    Args:
        document: Parsed update manifest, mutated in place
        addon_id: Add-on id from the archive
        new_version: Version from the archive
        digest_hex: SHA-256 hex digest of the archive
        link_template: Optional --update-link value

    Returns:
        MergeOutcome describing the appended entry
    """
    addons = document.get("addons")
    record = addons.get(addon_id) if isinstance(addons, dict) else None
    if not isinstance(record, dict):
        record = {}
    updates = record.get("updates")
    if not isinstance(updates, list):
        updates = []

    kept, latest, replaced = fold_updates(updates, new_version)

    if replaced:
        logger.warning(f"Found already existing version {new_version} in update file "
                       f"({replaced} entr{'y' if replaced == 1 else 'ies'} replaced)")

    update_link = resolve_update_link(new_version, latest, link_template)
    entry = build_entry(latest, new_version, digest_hex, update_link)

    # Malformed addons / record / updates values are replaced
    if not isinstance(addons, dict):
        addons = document["addons"] = {}
    if not isinstance(addons.get(addon_id), dict):
        addons[addon_id] = record
    addons[addon_id]["updates"] = kept + [entry]

    return MergeOutcome(addon_id=addon_id, entry=entry, latest=latest,
                        replaced=replaced, update_link=update_link)


def load_update_manifest(path: Optional[Union[str, Path]]) -> Dict[str, Any]:
    """
    Read an update manifest, falling back to an empty one

    Any read or parse problem is logged as a warning and yields an empty
    document rather than failing the run.
    """
    if path is None:
        return empty_manifest()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read update file {path}: {e}. Assuming new update manifest")
        return empty_manifest()

    if not isinstance(document, dict):
        logger.warning(f"Update file {path} is not a JSON object. Assuming new update manifest")
        return empty_manifest()

    if not isinstance(document.get("addons"), dict):
        document["addons"] = {}
    return document


def save_update_manifest(document: Dict[str, Any], path: Union[str, Path]) -> Path:
    """
    Write the update manifest atomically

    The JSON goes to a temporary file next to the target which then replaces
    it, so a failed write leaves the previous file as it was.

    Raises:
        OutputWriteError: If serializing or writing fails
    """
    target = Path(path)
    try:
        payload = json.dumps(document, indent=JSON_INDENT, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise OutputWriteError(f"Could not write update file {target}: {e}") from e

    temp_path = None
    try:
        fd, temp_path = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp",
                                         dir=str(target.parent))
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(payload)
        if target.exists():
            shutil.copymode(target, temp_path)
        else:
            os.chmod(temp_path, 0o644)
        os.replace(temp_path, target)
    except OSError as e:
        if temp_path and os.path.exists(temp_path):
            os.remove(temp_path)
        raise OutputWriteError(f"Could not write update file {target}: {e}") from e

    return target
