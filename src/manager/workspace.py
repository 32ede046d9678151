"""Subtitle workspace: one loaded document, its translation and exports."""

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence, Tuple, Union

from common.config import settings
from common.subtitle_parser import (
    Node,
    SRTParser,
    SubtitleFormatError,
    merge_bilingual,
    to_canonical_srt,
)
from manager.file_service import FileSink, LocalFileSink, read_subtitle_text
from manager.pagination import PaginationView
from translator.error_handler import handle_translation_error
from translator.schemas import Credentials, TranslateFileStatus, TranslationOptions
from translator.translation_orchestrator import DocumentTranslator, Sleep
from translator.translation_service import TranslationBackend, translate_batch

logger = logging.getLogger(__name__)

ORIGINAL_FILENAME = "original.srt"
TRANSLATED_FILENAME = "translated.srt"
BILINGUAL_FILENAME = "translated_bilingual.srt"

# notify(level, message) with level "success" or "error"
Notifier = Callable[[str, str], None]


class NothingToExportError(ValueError):
    """Raised when an export is requested before there is content."""


class CredentialStore(Protocol):
    """Source of the user's translation credentials and preferences."""

    def get_credentials(self) -> Credentials:
        ...

    def get_options(self) -> TranslationOptions:
        ...


class SettingsCredentialStore:
    """Credentials and preferences taken from application settings."""

    def get_credentials(self) -> Credentials:
        return Credentials(
            api_key=settings.openai_api_key,
            custom_host=settings.translate_custom_host,
        )

    def get_options(self) -> TranslationOptions:
        return TranslationOptions(
            prompt_template=settings.translate_prompt_template,
            use_google=settings.use_google,
        )


def _log_notification(level: str, message: str) -> None:
    if level == "error":
        logger.error(message)
    else:
        logger.info(message)


class SubtitleWorkspace:
    """
    Holds a loaded subtitle document and its (partial) translation.

    The translated buffer has one slot per original node and is filled as
    pages or whole-file batches complete, so a failed run keeps everything
    translated before it.
    """

    def __init__(
        self,
        backend: TranslationBackend,
        credential_store: Optional[CredentialStore] = None,
        file_sink: Optional[FileSink] = None,
        notify: Optional[Notifier] = None,
        page_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.backend = backend
        self.credential_store = credential_store or SettingsCredentialStore()
        self.file_sink = file_sink or LocalFileSink()
        self.notify = notify or _log_notification
        self.page_size = settings.subtitle_page_size if page_size is None else page_size
        self.translator = DocumentTranslator(
            backend,
            page_size=self.page_size,
            max_attempts=max_attempts,
            sleep=sleep,
        )

        self.filename = ""
        self.nodes: List[Node] = []
        self.trans_nodes: List[Optional[Node]] = []
        self.pagination = PaginationView(self.nodes, self.page_size)
        self.loading = False

    @property
    def status(self) -> TranslateFileStatus:
        return self.translator.status

    def load_text(self, text: str, filename: str) -> List[Node]:
        """
        Load subtitle text, converting it to SRT when needed.

        The previous document stays loaded if the text is rejected.

        Raises:
            SubtitleFormatError: If the text can't be converted to SRT
        """
        try:
            canonical = to_canonical_srt(text)
        except SubtitleFormatError as e:
            self.notify("error", handle_translation_error(e))
            raise

        self.nodes = SRTParser.parse(canonical)
        self.trans_nodes = [None] * len(self.nodes)
        self.pagination = PaginationView(self.nodes, self.page_size)
        self.filename = filename

        logger.info(
            f"Loaded {filename}: {len(self.nodes)} nodes, "
            f"{self.pagination.page_count} pages"
        )
        return self.nodes

    def load_file(self, path: Union[str, Path]) -> List[Node]:
        """
        Read and load a subtitle file.

        Raises:
            FileTooLargeError: If the file exceeds the size ceiling
            SubtitleEncodingError: If the file is not text
            SubtitleFormatError: If the text can't be converted to SRT
        """
        try:
            text = read_subtitle_text(path)
        except ValueError as e:
            self.notify("error", handle_translation_error(e))
            raise
        return self.load_text(text, Path(path).name)

    @staticmethod
    def _store_translated(
        buffer: List[Optional[Node]], start_index: int, translated: Sequence[Node]
    ) -> None:
        for offset, node in enumerate(translated):
            buffer[start_index + offset] = node

    def current_page_nodes(self) -> Tuple[List[Optional[Node]], List[Optional[Node]]]:
        """Original and translated nodes of the current page."""
        return (
            self.pagination.current_nodes(),
            self.pagination.current_nodes(self.trans_nodes),
        )

    async def translate_current_page(self, lang: str) -> bool:
        """
        Translate the page being viewed with a single request.

        Failures are reported through ``notify`` and leave the translated
        buffer as it was.

        Returns:
            True if the page was translated
        """
        page_index = self.pagination.current_page
        page_nodes = [node for node in self.pagination.current_nodes() if node is not None]
        if not page_nodes:
            self.notify("error", "Nothing to translate")
            return False

        # Loading another document replaces self.trans_nodes; this run only
        # ever writes into the buffer of the document it started on
        buffer = self.trans_nodes
        start_index = self.pagination.slot_range(page_index).start

        self.loading = True
        try:
            translated = await translate_batch(
                page_nodes,
                lang,
                self.backend,
                self.credential_store.get_credentials(),
                self.credential_store.get_options(),
            )
        except Exception as e:
            self.notify("error", handle_translation_error(e))
            return False
        finally:
            self.loading = False

        self._store_translated(buffer, start_index, translated)
        return True

    async def translate_file(
        self, lang: str, cancel_event: Optional[asyncio.Event] = None
    ) -> bool:
        """
        Translate the whole document batch by batch.

        Each completed batch is written into the translated buffer right
        away. If the run aborts, batches completed before the failure stay.

        Returns:
            True if every batch was translated
        """
        if self.status.is_translating:
            self.notify("error", "A file translation is already running")
            return False

        buffer = self.trans_nodes

        def on_batch_done(batch_index: int, translated: Tuple[Node, ...]) -> None:
            self._store_translated(buffer, batch_index * self.page_size, translated)

        try:
            await self.translator.translate(
                self.nodes,
                lang,
                credentials=self.credential_store.get_credentials(),
                options=self.credential_store.get_options(),
                on_batch_done=on_batch_done,
                cancel_event=cancel_event,
            )
        except Exception as e:
            self.notify("error", handle_translation_error(e))
            return False

        self.notify("success", "translate file successfully")
        return True

    def translated_nodes(self) -> List[Node]:
        """Translated nodes in document order, skipping untranslated slots."""
        return [node for node in self.trans_nodes if node is not None]

    def _export(self, filename: str, nodes: Sequence[Node]) -> str:
        if not nodes:
            error = NothingToExportError("Nothing to download yet")
            self.notify("error", handle_translation_error(error))
            raise error
        return self.file_sink.save(filename, SRTParser.format(nodes))

    def export_original(self) -> str:
        return self._export(ORIGINAL_FILENAME, self.nodes)

    def export_translated(self) -> str:
        return self._export(TRANSLATED_FILENAME, self.translated_nodes())

    def export_bilingual(self) -> str:
        """Export original text above its translation for each translated cue."""
        return self._export(
            BILINGUAL_FILENAME, merge_bilingual(self.translated_nodes(), self.nodes)
        )
