"""File handler module: encoding-aware read and atomic write of text files.

Provides the file I/O used by the local document store and the
conflict report writer.
"""

import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file, detecting the encoding when it is not UTF-8.

    Documents written by this tool are always UTF-8, so strict UTF-8 is
    tried first. Files created by other editors that fail to decode are
    handed to charset-normalizer.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, keep the bytes we can
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(result), result.encoding)


def write_file(path: Path, content: str, encoding: str = "utf-8") -> int:
    """Write content to a file atomically, creating parent directories.

    The content goes to a temporary file in the same directory which then
    replaces the target, so an interrupted run never leaves a truncated
    document behind.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)

    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)
