"""File loading and storage for subtitle files."""

import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

from common.config import settings

logger = logging.getLogger(__name__)


class FileTooLargeError(ValueError):
    """Raised when a subtitle file exceeds the size ceiling."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"Max file size {max_size // 1024}KB (got {size} bytes)")


class SubtitleEncodingError(ValueError):
    """Raised when a subtitle file cannot be decoded as text."""


class FileSink(Protocol):
    """Destination for exported subtitle text."""

    def save(self, filename: str, content: str) -> str:
        """Store ``content`` under ``filename`` and return where it went."""
        ...


class LocalFileSink:
    """Writes exported subtitles into a directory on disk."""

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self.directory = Path(directory or settings.subtitle_storage_path)

    def save(self, filename: str, content: str) -> str:
        """
        Save subtitle content to ``directory / filename``.

        Creates the directory if it doesn't exist.

        Returns:
            String path to the saved file
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        file_path = self.directory / Path(filename).name
        file_path.write_text(content, encoding="utf-8")

        logger.info(f"Saved subtitle file: {file_path}")
        return str(file_path)


def decode_subtitle_bytes(
    raw: bytes, encodings: Optional[Sequence[str]] = None
) -> str:
    """
    Decode subtitle bytes trying each configured encoding in order.

    Raises:
        SubtitleEncodingError: If no encoding decodes the bytes
    """
    for encoding in encodings or settings.subtitle_input_encodings:
        try:
            return raw.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue

    raise SubtitleEncodingError("Cannot open as text file")


def read_subtitle_text(path: Union[str, Path], max_size: Optional[int] = None) -> str:
    """
    Read a subtitle file as text.

    The size ceiling is checked before anything is read or parsed.

    Args:
        path: Subtitle file path
        max_size: Size ceiling in bytes (defaults to settings.subtitle_max_file_size)

    Returns:
        Decoded file content

    Raises:
        FileNotFoundError: If the file doesn't exist
        FileTooLargeError: If the file exceeds the size ceiling
        SubtitleEncodingError: If the file is not text
    """
    file_path = Path(path)
    limit = settings.subtitle_max_file_size if max_size is None else max_size

    size = file_path.stat().st_size
    if size > limit:
        raise FileTooLargeError(size, limit)

    text = decode_subtitle_bytes(file_path.read_bytes())
    logger.info(f"Read subtitle file: {file_path} ({size} bytes)")
    return text
