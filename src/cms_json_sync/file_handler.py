"""JSON document I/O: import sources, export targets and the workspace file.

Import documents come from anywhere (spreadsheet exports, hand edits,
other tools), so reads accept any encoding: strict UTF-8 first, then
charset-normalizer detection.  Writes are atomic so an interrupted export
or store save never leaves a truncated JSON document behind.
"""

import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

from cms_json_sync.core.async_utils import run_sync

JSON_SUFFIX = ".json"


# =============================================================================
# Paths
# =============================================================================


def _absolute(path_str: str) -> Path:
    path = Path(path_str)
    if not path.is_absolute():
        raise ValueError(f"Path must be absolute: {path_str}")
    return path.resolve()


def validate_file_path(path_str: str) -> Path:
    """Resolve the path of a JSON document to import.

    Raises:
        ValueError: If the path is relative, missing, or not a regular file.
    """
    resolved = _absolute(path_str)
    if not resolved.exists():
        raise ValueError(f"File not found: {path_str}")
    if not resolved.is_file():
        raise ValueError(f"Path is not a file: {path_str}")
    return resolved


def validate_output_path(path_str: str) -> Path:
    """Resolve an export target.  Only its directory has to exist."""
    resolved = _absolute(path_str)
    if not resolved.parent.is_dir():
        raise ValueError(f"Output parent directory not found: {resolved.parent}")
    return resolved


def with_json_suffix(path: Path) -> Path:
    """Append ``.json`` unless *path* already ends with it (any case).

    Export names are often given as a bare collection name.
    """
    if path.suffix.lower() == JSON_SUFFIX:
        return path
    return path.with_name(path.name + JSON_SUFFIX)


# =============================================================================
# Decoding
# =============================================================================


def decode_json_bytes(raw: bytes) -> tuple[str, str]:
    """Decode *raw* into text ready for ``json.loads``.

    Returns:
        ``(text, encoding)``.  Pure ASCII reports as ``utf-8``.  A leading
        byte order mark is dropped.
    """
    if not raw:
        return ("", "utf-8")
    try:
        return (raw.decode("utf-8-sig"), "utf-8")
    except UnicodeDecodeError:
        pass

    match = from_bytes(raw).best()
    if match is None:
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(match).lstrip("\ufeff"), match.encoding)


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read *path* and decode it with :func:`decode_json_bytes`."""
    return decode_json_bytes(path.read_bytes())


# =============================================================================
# Writing
# =============================================================================


def write_file(path: Path, content: str, encoding: str = "utf-8") -> int:
    """Atomically replace *path* with *content*.

    Parent directories are created.  The data goes to a temp file next to
    the target, which is then moved into place with ``os.replace``.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode(encoding)

    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return len(data)


# =============================================================================
# Async wrappers
# =============================================================================


async def read_file_async(path_str: str) -> tuple[str, str, Path]:
    """Validate and read an import document off the event loop.

    Returns:
        ``(text, encoding, resolved_path)``.
    """
    resolved = await run_sync(validate_file_path, path_str)
    text, encoding = await run_sync(read_file_with_encoding, resolved)
    return (text, encoding, resolved)


async def write_file_async(
    path_str: str, content: str, encoding: str = "utf-8"
) -> tuple[Path, int]:
    """Validate an export target and write *content* to it.

    Returns:
        ``(resolved_path, bytes_written)``.
    """
    resolved = await run_sync(validate_output_path, path_str)
    return (resolved, await run_sync(write_file, resolved, content, encoding))
