"""Export a section's content to a text file."""

import os
import re
from pathlib import Path

from inkwell.utils.logging import get_logger


logger = get_logger(__name__)

EXPORT_FORMATS = ("md", "txt")


def export_filename(name: str, fmt: str) -> str:
    """File name for an exported section: ``<name or "untitled">.<fmt>``."""
    stem = re.sub(r"[\\/\x00]", "_", (name or "").strip()) or "untitled"
    return f"{stem}.{fmt}"


def atomic_write(path: Path, content: str) -> None:
    """
    Atomically write content to file with temp-file-rename pattern.

    Raises:
        OSError: On file I/O errors
    """
    temp_path = path.parent / f".{path.name}.tmp.{os.getpid()}"

    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        # Atomic on POSIX even if the target exists
        temp_path.replace(path)

    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        logger.error("atomic_write_failed", path=str(path), error=str(e))
        raise


def export_section(name: str, content: str, fmt: str, directory: Path) -> Path:
    """
    Write a section to ``directory`` as Markdown or plain text.

    Args:
        name: Section name (used for the file name)
        content: Section content, written as-is
        fmt: "md" or "txt"
        directory: Destination directory (created if missing)

    Returns:
        Path of the written file

    Raises:
        ValueError: If the format is not supported
    """
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt} (expected one of: {', '.join(EXPORT_FORMATS)})")

    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(name, fmt)
    atomic_write(path, content or "")

    logger.info("section_exported", path=str(path), format=fmt, size=len(content or ""))
    return path
