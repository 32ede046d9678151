"""Whole-document translation: sequential batches with bounded retries."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from common.config import settings
from common.retry_utils import BackoffStrategy, backoff_from_settings, is_transient_error
from common.string_utils import summarize_sentences
from common.subtitle_parser import Node, chunk_nodes, extract_text_for_translation
from translator.schemas import (
    TERMINAL_STATES,
    Credentials,
    RunState,
    TranslateFileStatus,
    TranslationOptions,
)
from translator.translation_service import TranslationBackend, translate_batch

logger = logging.getLogger(__name__)

# Called once per completed batch with the batch index and its translated nodes
BatchListener = Callable[[int, Tuple[Node, ...]], None]
Sleep = Callable[[float], Awaitable[None]]


class DocumentTranslationError(Exception):
    """A batch exhausted its attempts; the document run is aborted."""

    def __init__(self, batch_index: int, batch: Sequence[Node], attempts: int):
        self.batch_index = batch_index
        self.batch = tuple(batch)
        self.attempts = attempts
        summary = summarize_sentences(extract_text_for_translation(self.batch))
        super().__init__(
            f"translate file batch {batch_index + 1} failed after {attempts} "
            f"attempt(s): [{summary}]"
        )


class TranslationCancelledError(Exception):
    """The caller cancelled the document run between batches."""

    def __init__(self, batch_index: int):
        self.batch_index = batch_index
        super().__init__(f"translation cancelled before batch {batch_index + 1}")


class DocumentTranslator:
    """
    Drives one whole-document translation run at a time.

    Batches are translated strictly one after another. Each batch gets up to
    ``max_attempts`` tries with a cooldown from ``backoff`` between them. A
    batch that runs out of attempts aborts the run; batches already handed to
    the listener stay valid for the caller.
    """

    def __init__(
        self,
        backend: TranslationBackend,
        page_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff: Optional[BackoffStrategy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.backend = backend
        self.page_size = (
            settings.subtitle_page_size if page_size is None else page_size
        )
        self.max_attempts = (
            settings.translate_max_attempts if max_attempts is None else max_attempts
        )
        self.backoff = backoff or backoff_from_settings()
        self.sleep = sleep
        self.status = TranslateFileStatus()
        self.batch_index = 0
        self.attempt = 0

        if self.page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {self.page_size}")
        if self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )

    @property
    def state(self) -> RunState:
        return self.status.state

    def _transition(self, state: RunState) -> None:
        logger.debug(
            f"Run state {self.status.state.value} -> {state.value} "
            f"(batch {self.batch_index + 1}, attempt {self.attempt})"
        )
        self.status.state = state
        if state in TERMINAL_STATES:
            self.status.is_translating = False

    async def translate(
        self,
        nodes: Sequence[Node],
        lang: str,
        credentials: Optional[Credentials] = None,
        options: Optional[TranslationOptions] = None,
        on_batch_done: Optional[BatchListener] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[Node]:
        """
        Translate every node of a document.

        Args:
            nodes: All nodes of the document
            lang: Target language
            credentials: Optional user credentials
            options: Optional prompt template and provider selection
            on_batch_done: Listener called synchronously after each batch
            cancel_event: Checked before each batch; set it to stop the run

        Returns:
            Translated nodes for the whole document, in order

        Raises:
            DocumentTranslationError: A batch failed ``max_attempts`` times
            RateLimitError: The backend throttled the request (not retried)
            TranslationCancelledError: ``cancel_event`` was set
            RuntimeError: A run is already in progress on this translator
        """
        if self.status.is_translating:
            raise RuntimeError("A document translation is already running")

        batches = chunk_nodes(nodes, self.page_size)
        self.status = TranslateFileStatus(
            is_translating=True, trans_count=0, total_batches=len(batches)
        )
        self.batch_index = 0
        self.attempt = 0
        self._transition(RunState.RUNNING)

        logger.info(
            f"🚀 Translating {len(nodes)} nodes to {lang} in {len(batches)} batches"
        )

        results: List[Node] = []
        try:
            for batch_index, batch in enumerate(batches):
                self.batch_index = batch_index
                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"🛑 Translation cancelled at batch {batch_index + 1}")
                    self._transition(RunState.CANCELLED)
                    raise TranslationCancelledError(batch_index)

                translated = await self._translate_with_retry(
                    batch_index, batch, lang, credentials, options
                )
                results.extend(translated)
                self.status.trans_count += 1
                logger.info(
                    f"✅ Completed batch {batch_index + 1}/{len(batches)} "
                    f"({len(results)} of {len(nodes)} nodes translated)"
                )

                if on_batch_done is not None:
                    on_batch_done(batch_index, tuple(translated))
        except BaseException:
            if self.status.state not in TERMINAL_STATES:
                self._transition(RunState.ABORTED)
            raise

        self._transition(RunState.COMPLETED)
        return results

    async def _translate_with_retry(
        self,
        batch_index: int,
        batch: List[Node],
        lang: str,
        credentials: Optional[Credentials],
        options: Optional[TranslationOptions],
    ) -> List[Node]:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            self.attempt = attempt
            try:
                translated = await translate_batch(
                    batch, lang, self.backend, credentials, options
                )
            except Exception as e:
                last_error = e

                if not is_transient_error(e):
                    logger.error(
                        f"❌ Permanent error in batch {batch_index + 1}: {e}. Not retrying."
                    )
                    self._transition(RunState.ABORTED)
                    raise

                if attempt >= self.max_attempts:
                    break

                delay = self.backoff(attempt)
                logger.warning(
                    f"⚠️  Batch {batch_index + 1} failed: {e}. "
                    f"Retry {attempt}/{self.max_attempts - 1} in {delay:.2f}s..."
                )
                self._transition(RunState.RETRYING)
                await self.sleep(delay)
                self._transition(RunState.RUNNING)
                continue

            return translated

        logger.error(
            f"❌ Max attempts ({self.max_attempts}) exceeded for batch "
            f"{batch_index + 1}. Last error: {last_error}"
        )
        self._transition(RunState.ABORTED)
        raise DocumentTranslationError(
            batch_index, batch, self.max_attempts
        ) from last_error


async def translate_document(
    nodes: Sequence[Node],
    lang: str,
    backend: TranslationBackend,
    credentials: Optional[Credentials] = None,
    options: Optional[TranslationOptions] = None,
    on_batch_done: Optional[BatchListener] = None,
    cancel_event: Optional[asyncio.Event] = None,
    page_size: Optional[int] = None,
    max_attempts: Optional[int] = None,
    backoff: Optional[BackoffStrategy] = None,
    sleep: Sleep = asyncio.sleep,
) -> List[Node]:
    """
    Translate a whole document with a fresh :class:`DocumentTranslator`.

    See :meth:`DocumentTranslator.translate` for arguments and errors.
    """
    translator = DocumentTranslator(
        backend,
        page_size=page_size,
        max_attempts=max_attempts,
        backoff=backoff,
        sleep=sleep,
    )
    return await translator.translate(
        nodes,
        lang,
        credentials=credentials,
        options=options,
        on_batch_done=on_batch_done,
        cancel_event=cancel_event,
    )
