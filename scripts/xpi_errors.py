#!/usr/bin/env python3
"""
Error types for the update manifest tool.
Core modules raise these; only the command line entry point maps them to an exit status.
"""


class XpiUpdateError(Exception):
    """Base class for terminal errors of a run"""

    exit_code = 1


class UsageError(XpiUpdateError):
    """No archive path given"""


class InputNotFoundError(XpiUpdateError):
    """Archive file does not exist"""


class ArchiveReadError(XpiUpdateError):
    """Archive is unreadable or not a valid zip container"""


class ArchiveMissingManifestError(XpiUpdateError):
    """Archive has no manifest.json entry"""


class DescriptorParseError(XpiUpdateError):
    """manifest.json inside the archive is not usable JSON"""


class IdentityMissingError(XpiUpdateError):
    """manifest.json does not declare an extension id"""


class LinkUnresolvableError(XpiUpdateError):
    """No --update-link given and no previous update_link to reuse"""


class DigestError(XpiUpdateError):
    """Archive could not be read while hashing"""


class OutputWriteError(XpiUpdateError):
    """Update manifest could not be written"""
