"""
RULEBOOK Writer - Read and atomically rewrite the configuration document.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from roster.core.errors import DocumentNotFoundError, DocumentParseError, DocumentWriteError
from roster.document.parser import ConfigDocument, parse

logger = logging.getLogger(__name__)


def read_document(path: Path) -> ConfigDocument:
    """
    Read and parse the configuration document.

    Raises:
        DocumentNotFoundError: File does not exist
        DocumentParseError: File is not valid UTF-8 text
    """
    path = Path(path)
    if not path.is_file():
        raise DocumentNotFoundError(f"Configuration document not found: {path}")

    # newline="" keeps \r\n intact so serialization is byte-identical
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise DocumentParseError(f"{path} is not valid UTF-8: {e}") from e

    return parse(text)


def write_document(path: Path, doc: Union[ConfigDocument, str]) -> None:
    """
    Atomically replace `path` with the serialized document.

    The content is written to a temporary file in the same directory,
    flushed to disk, then renamed over the target. If anything fails the
    temporary file is removed and the original file is left untouched.

    Raises:
        DocumentWriteError: Write or rename failed
    """
    path = Path(path)
    text = doc if isinstance(doc, str) else doc.serialize()
    directory = path.parent
    tmp_path = None

    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=directory, prefix=f".{path.name}.", suffix=".tmp"
        )
        tmp_path = Path(tmp_name)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())

        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o7777)

        os.replace(tmp_path, path)
        tmp_path = None
        logger.debug(f"Wrote {len(text)} characters to {path}")

    except OSError as e:
        raise DocumentWriteError(f"Failed to write {path}: {e}") from e

    finally:
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove temporary file {tmp_path}: {e}")
