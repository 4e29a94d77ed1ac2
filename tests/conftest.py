"""
Pytest configuration and shared fixtures for xpi-update-manifest tests.

This module provides common fixtures that can be used across all test files.
"""
import json
import sys
import zipfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest


# Add scripts directory to path for imports
SCRIPTS_DIR = Path(__file__).parent.parent / "scripts"
sys.path.insert(0, str(SCRIPTS_DIR))

ADDON_ID = "ext@x"


# ============================================================================
# Descriptor Fixtures
# ============================================================================

@pytest.fixture
def sample_descriptor():
    """Provide a manifest.json as packaged inside an .xpi."""
    return {
        "manifest_version": 2,
        "name": "Sample Extension",
        "version": "1.0",
        "applications": {
            "gecko": {
                "id": ADDON_ID,
                "strict_min_version": "60.0"
            }
        },
        "background": {"scripts": ["background.js"]}
    }


# ============================================================================
# Archive Fixtures
# ============================================================================

@pytest.fixture
def make_xpi(tmp_path, sample_descriptor):
    """Build an .xpi archive in tmp_path.

    Args (of the returned factory):
        name: File name of the archive
        descriptor: manifest.json content (dict), defaults to sample_descriptor
        raw_manifest: Raw manifest.json bytes, overrides descriptor
        include_manifest: Set False to leave manifest.json out
        signed: Add META-INF/mozilla.sf
        extra: Mapping of additional entry names to content
    """
    def _make(name="addon.xpi", descriptor=None, raw_manifest=None,
              include_manifest=True, signed=True, extra=None):
        path = tmp_path / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("background.js", "console.log('hello');\n" * 50)
            if include_manifest:
                if raw_manifest is None:
                    raw_manifest = json.dumps(descriptor or sample_descriptor).encode("utf-8")
                zf.writestr("manifest.json", raw_manifest)
            for entry_name, content in (extra or {}).items():
                zf.writestr(entry_name, content)
            if signed:
                zf.writestr("META-INF/manifest.mf", "Manifest-Version: 1.0\n")
                zf.writestr("META-INF/mozilla.sf", "Signature-Version: 1.0\n")
                zf.writestr("META-INF/mozilla.rsa", b"\x30\x82\x00\x00")
        return path
    return _make


@pytest.fixture
def xpi_file(make_xpi):
    """A signed archive with the sample descriptor."""
    return make_xpi()


@pytest.fixture
def encrypted_xpi(make_xpi):
    """An archive whose central directory flags every entry as encrypted."""
    path = make_xpi(name="encrypted.xpi")
    data = bytearray(path.read_bytes())
    offset = data.find(b"PK\x01\x02")
    while offset != -1:
        # General purpose flag sits 8 bytes into a central directory header
        data[offset + 8] |= 0x01
        offset = data.find(b"PK\x01\x02", offset + 4)
    path.write_bytes(bytes(data))
    return path


# ============================================================================
# Update Manifest Fixtures
# ============================================================================

@pytest.fixture
def sample_update_manifest():
    """Provide an update.json with two published versions."""
    return {
        "addons": {
            ADDON_ID: {
                "updates": [
                    {
                        "version": "1.0.0",
                        "update_hash": "sha256:" + "0" * 64,
                        "update_link": "https://x/d?v=1.0.0",
                        "applications": {"gecko": {"strict_min_version": "52.0"}}
                    },
                    {
                        "version": "1.0.1",
                        "update_hash": "sha256:" + "1" * 64,
                        "update_link": "https://x/d?v=1.0.1",
                        "compat": {"min": "60"}
                    }
                ]
            }
        }
    }


@pytest.fixture
def update_manifest_file(tmp_path, sample_update_manifest):
    """Write sample_update_manifest to a temporary update.json."""
    path = tmp_path / "update.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(sample_update_manifest, f, indent=4)
    return path


# ============================================================================
# HTTP Mock Fixtures
# ============================================================================

@pytest.fixture
def mock_http_response():
    """Create a mock HTTP response object."""
    def _create_mock(status_code=200, headers=None):
        mock = MagicMock()
        mock.status_code = status_code
        mock.headers = headers or {}
        return mock
    return _create_mock
