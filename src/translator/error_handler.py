"""Error handling utilities for translation tasks."""

import logging

from common.subtitle_parser import SubtitleFormatError
from translator.translation_orchestrator import (
    DocumentTranslationError,
    TranslationCancelledError,
)
from translator.translation_service import (
    BatchTranslationError,
    RateLimitError,
    RedirectSignal,
)

logger = logging.getLogger(__name__)


def handle_translation_error(error: Exception) -> str:
    """
    Log an error raised while loading or translating subtitles.

    Args:
        error: Exception that occurred

    Returns:
        Message to show to the user
    """
    # Imported lazily, manager depends on translator and not the other way
    from manager.file_service import FileTooLargeError, SubtitleEncodingError
    from manager.workspace import NothingToExportError

    error_message = str(error)

    if isinstance(error, FileTooLargeError):
        logger.error(f"❌ Subtitle file too large: {error_message}")
        return error_message
    if isinstance(error, SubtitleEncodingError):
        logger.error(f"❌ Subtitle file is not text: {error_message}")
        return "Cannot open as text file"
    if isinstance(error, SubtitleFormatError):
        logger.error(f"❌ Unsupported subtitle format: {error_message}")
        return "Cannot convert to a valid SRT file"
    if isinstance(error, NothingToExportError):
        logger.warning(f"⚠️  {error_message}")
        return error_message
    if isinstance(error, RedirectSignal):
        logger.warning(f"⚠️  Translation redirected to purchase flow: {error.url}")
        return "redirected"
    if isinstance(error, RateLimitError):
        logger.error(f"❌ Translation rate limited: {error_message}")
        return "rate limited. Please enter your OpenAI key"
    if isinstance(error, TranslationCancelledError):
        logger.info(f"🛑 {error_message}")
        return "translate file cancelled"
    if isinstance(error, DocumentTranslationError):
        logger.error(f"❌ Document translation aborted: {error_message}")
        return f"translate file failed {error_message}"
    if isinstance(error, BatchTranslationError):
        logger.error(f"❌ Batch translation failed: {error_message}")
        return f"translate failed {error_message}"

    logger.error(
        f"❌ Unexpected error processing translation: {error_message}",
        exc_info=True,
    )
    return f"Translation error: {error_message}"
