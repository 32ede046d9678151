"""Tests for whole-document translation with bounded batch retries."""

import asyncio
import logging

import pytest

from common.retry_utils import fixed_backoff
from common.subtitle_parser import SRTParser, merge_bilingual
from translator.schemas import RunState
from translator.translation_orchestrator import (
    DocumentTranslationError,
    DocumentTranslator,
    TranslationCancelledError,
    translate_document,
)
from translator.translation_service import (
    BatchTranslationError,
    RateLimitError,
    RedirectSignal,
)


def make_translator(backend, sleep, page_size=10, max_attempts=5, delay=3.0):
    return DocumentTranslator(
        backend,
        page_size=page_size,
        max_attempts=max_attempts,
        backoff=fixed_backoff(delay),
        sleep=sleep,
    )


@pytest.mark.unit
class TestRetryCeiling:
    """A batch gets five attempts with a fixed cooldown between them."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failures", [0, 1, 2, 3, 4])
    async def test_succeeds_within_attempt_limit(
        self, backend_factory, no_sleep, node_factory, failures
    ):
        backend = backend_factory(failures=failures)
        translator = make_translator(backend, no_sleep)

        result = await translator.translate([node_factory(1, "Hi")], "zh")

        assert [n.content for n in result] == ["[zh] Hi"]
        assert backend.call_count == failures + 1
        assert no_sleep.await_count == failures
        assert translator.state == RunState.COMPLETED

    @pytest.mark.asyncio
    async def test_fails_after_five_attempts(
        self, backend_factory, no_sleep, node_factory
    ):
        backend = backend_factory(failures=5)
        translator = make_translator(backend, no_sleep)

        with pytest.raises(DocumentTranslationError) as exc_info:
            await translator.translate([node_factory(1, "Hi,\nthere")], "zh")

        error = exc_info.value
        assert backend.call_count == 5
        assert error.batch_index == 0
        assert error.attempts == 5
        assert "Hi, / there" in str(error)
        assert isinstance(error.__cause__, BatchTranslationError)
        assert translator.state == RunState.ABORTED
        assert translator.status.is_translating is False

    @pytest.mark.asyncio
    async def test_fixed_cooldown_between_attempts(
        self, backend_factory, no_sleep, node_factory
    ):
        backend = backend_factory(failures=2)

        await make_translator(backend, no_sleep).translate([node_factory(1, "Hi")], "zh")

        assert [call.args[0] for call in no_sleep.await_args_list] == [3.0, 3.0]

    @pytest.mark.asyncio
    async def test_no_sleep_after_last_attempt(
        self, backend_factory, no_sleep, node_factory
    ):
        backend = backend_factory(failures=10)

        with pytest.raises(DocumentTranslationError):
            await make_translator(backend, no_sleep, max_attempts=3).translate(
                [node_factory(1, "Hi")], "zh"
            )

        assert backend.call_count == 3
        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_counter_resets_per_batch(
        self, backend_factory, no_sleep, sample_nodes
    ):
        attempts = {}

        def fails_first_four_tries(request):
            key = request.sentences[0]
            attempts[key] = attempts.get(key, 0) + 1
            return attempts[key] <= 4

        backend = backend_factory(fail_when=fails_first_four_tries)

        result = await make_translator(backend, no_sleep).translate(sample_nodes, "zh")

        assert len(result) == 25
        assert backend.call_count == 3 * 5


@pytest.mark.unit
class TestFailFast:
    """A failed batch aborts the run; completed batches stay reported."""

    @pytest.mark.asyncio
    async def test_aborts_on_second_of_four_batches(
        self, backend_factory, no_sleep, node_factory
    ):
        nodes = [node_factory(pos, f"Line {pos}") for pos in range(1, 9)]
        backend = backend_factory(fail_when=lambda r: r.sentences[0] == "Line 3")
        reported = []

        with pytest.raises(DocumentTranslationError) as exc_info:
            await translate_document(
                nodes,
                "zh",
                backend,
                on_batch_done=lambda i, batch: reported.append((i, batch)),
                page_size=2,
                backoff=fixed_backoff(3.0),
                sleep=no_sleep,
            )

        assert exc_info.value.batch_index == 1
        assert "batch 2" in str(exc_info.value)
        assert [i for i, _ in reported] == [0]
        assert [n.content for n in reported[0][1]] == ["[zh] Line 1", "[zh] Line 2"]
        # One call for batch 1, five for batch 2, none for batches 3 and 4
        assert backend.call_count == 6

    @pytest.mark.asyncio
    async def test_listener_called_once_per_completed_batch(
        self, backend_factory, no_sleep, node_factory
    ):
        nodes = [node_factory(pos, f"Line {pos}") for pos in range(1, 9)]
        backend = backend_factory(fail_when=lambda r: r.sentences[0] == "Line 5")
        listener_calls = []

        with pytest.raises(DocumentTranslationError):
            await make_translator(backend, no_sleep, page_size=2).translate(
                nodes, "zh", on_batch_done=lambda i, b: listener_calls.append(i)
            )

        assert listener_calls == [0, 1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            RateLimitError("rate limited. Please enter your OpenAI key"),
            RedirectSignal("https://shop.example.com"),
        ],
    )
    async def test_rate_limit_is_not_retried(
        self, backend_factory, no_sleep, node_factory, error
    ):
        backend = backend_factory(failures=1, error=error)
        translator = make_translator(backend, no_sleep)

        with pytest.raises(type(error)):
            await translator.translate([node_factory(1, "Hi")], "zh")

        assert backend.call_count == 1
        assert no_sleep.await_count == 0
        assert translator.state == RunState.ABORTED

    @pytest.mark.asyncio
    async def test_listener_error_aborts_run(
        self, fake_backend, no_sleep, sample_nodes
    ):
        def listener(batch_index, batch):
            raise KeyError("storage unavailable")

        translator = make_translator(fake_backend, no_sleep)

        with pytest.raises(KeyError):
            await translator.translate(sample_nodes, "zh", on_batch_done=listener)

        assert fake_backend.call_count == 1
        assert translator.state == RunState.ABORTED


@pytest.mark.unit
class TestDocumentTranslatorRun:
    """Ordering, progress, cancellation and run exclusivity."""

    @pytest.mark.asyncio
    async def test_batches_are_sequential_and_ordered(
        self, fake_backend, no_sleep, sample_nodes
    ):
        reported = []
        translator = make_translator(fake_backend, no_sleep)

        result = await translator.translate(
            sample_nodes, "zh", on_batch_done=lambda i, b: reported.append((i, len(b)))
        )

        assert reported == [(0, 10), (1, 10), (2, 5)]
        assert [n.pos for n in result] == list(range(1, 26))
        assert [len(r.sentences) for r in fake_backend.requests] == [10, 10, 5]
        assert fake_backend.requests[1].sentences[0] == "Line 11"
        assert translator.status.trans_count == 3
        assert translator.status.total_batches == 3
        assert translator.status.describe() == "3/3"
        assert translator.status.is_translating is False

    @pytest.mark.asyncio
    async def test_empty_document(self, fake_backend, no_sleep):
        translator = make_translator(fake_backend, no_sleep)

        assert await translator.translate([], "zh") == []
        assert fake_backend.call_count == 0
        assert translator.state == RunState.COMPLETED

    @pytest.mark.asyncio
    async def test_cancel_before_next_batch(self, fake_backend, no_sleep, sample_nodes):
        cancel_event = asyncio.Event()
        reported = []

        def listener(batch_index, batch):
            reported.append(batch_index)
            cancel_event.set()

        translator = make_translator(fake_backend, no_sleep)

        with pytest.raises(TranslationCancelledError) as exc_info:
            await translator.translate(
                sample_nodes, "zh", on_batch_done=listener, cancel_event=cancel_event
            )

        assert exc_info.value.batch_index == 1
        assert reported == [0]
        assert fake_backend.call_count == 1
        assert translator.state == RunState.CANCELLED

    @pytest.mark.asyncio
    async def test_states_during_retry(self, backend_factory, node_factory):
        seen_states = []
        translator = None

        async def recording_sleep(delay):
            seen_states.append(translator.state)

        translator = make_translator(backend_factory(failures=1), recording_sleep)

        await translator.translate([node_factory(1, "Hi")], "zh")

        assert seen_states == [RunState.RETRYING]
        assert translator.state == RunState.COMPLETED

    @pytest.mark.asyncio
    async def test_concurrent_run_rejected(self, node_factory, no_sleep):
        release = asyncio.Event()

        class SlowBackend:
            async def translate(self, request, use_google=False):
                await release.wait()
                return list(request.sentences)

        translator = make_translator(SlowBackend(), no_sleep)
        first_run = asyncio.create_task(
            translator.translate([node_factory(1, "Hi")], "zh")
        )
        await asyncio.sleep(0)

        with pytest.raises(RuntimeError):
            await translator.translate([node_factory(1, "Hi")], "zh")

        release.set()
        assert [n.content for n in await first_run] == ["Hi"]

    @pytest.mark.parametrize("kwargs", [{"page_size": 0}, {"max_attempts": 0}])
    def test_rejects_invalid_limits(self, fake_backend, kwargs):
        with pytest.raises(ValueError):
            DocumentTranslator(fake_backend, **kwargs)

    def test_defaults_from_settings(self, fake_backend, monkeypatch):
        monkeypatch.setattr(
            "translator.translation_orchestrator.settings.subtitle_page_size", 7
        )
        monkeypatch.setattr(
            "translator.translation_orchestrator.settings.translate_max_attempts", 2
        )

        translator = DocumentTranslator(fake_backend)

        assert translator.page_size == 7
        assert translator.max_attempts == 2

    @pytest.mark.asyncio
    async def test_logs_retries(self, backend_factory, no_sleep, node_factory, caplog):
        backend = backend_factory(failures=1)

        with caplog.at_level(logging.WARNING, logger="translator.translation_orchestrator"):
            await make_translator(backend, no_sleep).translate([node_factory(1, "Hi")], "zh")

        assert "Batch 1 failed" in caplog.text


@pytest.mark.integration
class TestHiByeDocument:
    """Two-caption document translated one caption per batch."""

    @pytest.mark.asyncio
    async def test_translate_and_merge(self, backend_factory, no_sleep, hi_bye_srt_content):
        nodes = SRTParser.parse(hi_bye_srt_content)
        backend = backend_factory(mapping={"Hi": "你好", "Bye": "再见"})
        reported = []

        translated = await translate_document(
            nodes,
            "zh",
            backend,
            on_batch_done=lambda i, b: reported.append(i),
            page_size=1,
            sleep=no_sleep,
        )

        assert reported == [0, 1]
        assert SRTParser.format(translated) == (
            "1\n00:00:01,000 --> 00:00:02,000\n你好\n\n"
            "2\n00:00:03,000 --> 00:00:04,000\n再见\n"
        )
        bilingual = merge_bilingual(translated, nodes)
        assert [n.content for n in bilingual] == ["Hi\n你好", "Bye\n再见"]
