"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

# Add src directory to Python path for imports
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from common.subtitle_parser import Node, TimeRange  # noqa: E402
from translator.schemas import TranslateRequest  # noqa: E402
from translator.translation_service import BatchTranslationError  # noqa: E402


class FakeTranslationBackend:
    """
    In-memory translate capability.

    Translates through ``mapping`` (falling back to a ``[lang]`` prefix),
    fails the first ``failures`` calls, and fails every call for which
    ``fail_when(request)`` is true.
    """

    def __init__(
        self,
        mapping: Optional[Dict[str, str]] = None,
        failures: int = 0,
        fail_when: Optional[Callable[[TranslateRequest], bool]] = None,
        error: Optional[Exception] = None,
    ):
        self.mapping = mapping or {}
        self.failures_remaining = failures
        self.fail_when = fail_when
        self.error = error or BatchTranslationError("upstream translator failed")
        self.requests: List[TranslateRequest] = []
        self.use_google_flags: List[bool] = []

    async def translate(
        self, request: TranslateRequest, use_google: bool = False
    ) -> List[str]:
        self.requests.append(request)
        self.use_google_flags.append(use_google)
        if self.fail_when is not None and self.fail_when(request):
            raise self.error
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise self.error
        return [
            self.mapping.get(sentence, f"[{request.target_lang}] {sentence}")
            for sentence in request.sentences
        ]

    @property
    def call_count(self) -> int:
        return len(self.requests)


def make_node(pos: int, content: str, start_second: int = None) -> Node:
    """Build a node lasting one second, starting at ``pos`` seconds by default."""
    start = pos if start_second is None else start_second
    return Node(
        pos=pos,
        time_range=TimeRange.from_milliseconds(start * 1000, (start + 1) * 1000),
        content=content,
    )


@pytest.fixture
def fake_backend():
    """Fake translation backend that always succeeds."""
    return FakeTranslationBackend()


@pytest.fixture
def no_sleep():
    """Zero-delay replacement for asyncio.sleep that records requested delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def node_factory():
    return make_node


@pytest.fixture
def sample_nodes():
    """Twenty-five nodes: three batches of 10, 10 and 5 with the default page size."""
    return [make_node(pos, f"Line {pos}") for pos in range(1, 26)]


@pytest.fixture
def sample_srt_content():
    """Provide simple SRT content for testing."""
    return """1
00:00:01,000 --> 00:00:04,000
Welcome to this video

2
00:00:04,500 --> 00:00:08,000
Today we're going to learn something new

3
00:00:08,500 --> 00:00:12,000
Let's get started!
"""


@pytest.fixture
def hi_bye_srt_content():
    return (
        "1\n00:00:01,000 --> 00:00:02,000\nHi\n\n"
        "2\n00:00:03,000 --> 00:00:04,000\nBye\n\n"
    )


@pytest.fixture
def backend_factory():
    """Build FakeTranslationBackend instances with custom behavior."""
    return FakeTranslationBackend


@pytest.fixture(autouse=True)
def restore_package_loggers():
    """Undo handler changes made by setup_service_logging so caplog keeps working."""
    import logging

    names = ("common", "translator", "manager")
    saved = {}
    for name in names:
        package_logger = logging.getLogger(name)
        saved[name] = (
            list(package_logger.handlers),
            package_logger.level,
            package_logger.propagate,
        )
    yield
    for name, (handlers, level, propagate) in saved.items():
        package_logger = logging.getLogger(name)
        package_logger.handlers = handlers
        package_logger.setLevel(level)
        package_logger.propagate = propagate
