#!/usr/bin/env python3
"""Streaming SHA-256 of a whole archive file"""

import hashlib
import logging
import os
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Union

from xpi_errors import DigestError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = int(os.environ.get('XPI_DIGEST_CHUNK_SIZE', str(1024 * 1024)))


def sha256_file(path: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """
    Calculate the SHA256 hash of a file, reading it in chunks

    Args:
        path: File to hash
        chunk_size: Bytes read per iteration

    Returns:
        Hex digest, only once the whole file has been read

    Raises:
        DigestError: If the file cannot be read
    """
    sha256 = hashlib.sha256()
    try:
        with open(path, 'rb') as f:
            for chunk in iter(lambda: f.read(chunk_size), b''):
                sha256.update(chunk)
    except OSError as e:
        raise DigestError(f"Could not compute hash: {e}") from e

    digest = sha256.hexdigest()
    logger.debug(f"sha256 of {path}: {digest}")
    return digest


def submit_digest(executor: Executor, path: Union[str, Path]) -> Future:
    """Schedule sha256_file on an executor and return its future."""
    return executor.submit(sha256_file, path)
