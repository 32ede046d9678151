"""SRT subtitle parser, format converters and batching helpers."""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from common.utils import MathUtils, TimestampUtils

logger = logging.getLogger(__name__)

# Captions shown on one page and sent in one translation request
DEFAULT_PAGE_SIZE = 10

# Duration given to each line of a plain text file that carries no timing
PLAIN_TEXT_CUE_SECONDS = 2

BILINGUAL_SEPARATOR = "\n"


class SubtitleFormatError(ValueError):
    """Raised when text matches no known or convertible caption grammar."""


class TranslationCountMismatchError(ValueError):
    """
    Raised when the number of translated sentences doesn't match the batch.

    The translation backend answers with an array aligned 1:1 with the
    request's sentences; anything else cannot be zipped back onto captions.
    """

    def __init__(self, expected_count: int, actual_count: int):
        self.expected_count = expected_count
        self.actual_count = actual_count
        super().__init__(
            f"Translation count mismatch: expected {expected_count} "
            f"translations, got {actual_count}"
        )


@dataclass(frozen=True)
class TimeRange:
    """Start and end timestamps of a caption, both ``HH:MM:SS,mmm``."""

    start: str
    end: str

    def __str__(self) -> str:
        return f"{self.start} --> {self.end}"

    @classmethod
    def from_milliseconds(cls, start_ms: int, end_ms: int) -> "TimeRange":
        return cls(
            start=TimestampUtils.ms_to_srt_timestamp(start_ms),
            end=TimestampUtils.ms_to_srt_timestamp(end_ms),
        )


@dataclass(frozen=True)
class Node:
    """
    One subtitle cue.

    ``pos`` is the sequence number as it appeared in the source file. It is
    the identity of the cue and is never re-derived from list positions.
    """

    pos: int
    time_range: TimeRange
    content: str

    def __str__(self) -> str:
        """Format node as SRT entry."""
        return f"{self.pos}\n{self.time_range}\n{self.content}\n"

    def with_content(self, content: str) -> "Node":
        """Return a copy of this node carrying ``content``."""
        return replace(self, content=content)


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")


def _split_blocks(text: str) -> List[str]:
    sanitized = text.strip()
    if not sanitized:
        return []
    return re.split(r"\n[ \t]*\n", sanitized)


class SRTParser:
    """Parser and formatter for the canonical SRT block grammar."""

    # SRT timestamp format: HH:MM:SS,mmm
    TIMESTAMP_PATTERN = re.compile(
        r"^\s*(\d{2}:\d{2}:\d{2},\d{3})\s*-->\s*(\d{2}:\d{2}:\d{2},\d{3})\s*$",
        re.ASCII,
    )
    # Sequence numbers are ASCII digits only; str.isdigit() also accepts "²"
    INDEX_PATTERN = re.compile(r"^[0-9]+$")

    @staticmethod
    def _parse_block(block: str) -> Optional[Node]:
        lines = block.split("\n")
        if len(lines) < 3:
            return None

        index_line = lines[0].strip()
        if not SRTParser.INDEX_PATTERN.match(index_line):
            return None

        timestamp_match = SRTParser.TIMESTAMP_PATTERN.match(lines[1])
        if not timestamp_match:
            return None

        content = "\n".join(line.strip() for line in lines[2:])
        if not content.strip():
            return None

        return Node(
            pos=int(index_line),
            time_range=TimeRange(
                start=timestamp_match.group(1), end=timestamp_match.group(2)
            ),
            content=content,
        )

    @staticmethod
    def is_valid_format(text: str) -> bool:
        """
        Check whether ``text`` is canonical SRT.

        Every blank-line separated block must consist of a sequence number,
        a ``START --> END`` line and at least one content line. This is a
        fast discriminator; use :meth:`parse` to extract the cues.
        """
        if not isinstance(text, str):
            return False
        blocks = _split_blocks(_normalize_newlines(text))
        if not blocks:
            return False
        return all(SRTParser._parse_block(block) is not None for block in blocks)

    @staticmethod
    def parse(content: str) -> List[Node]:
        """
        Parse SRT content into nodes.

        Blocks that don't match the grammar are skipped, so hand-edited
        files still yield the cues that are intact.

        Args:
            content: Raw SRT file content

        Returns:
            List of Node objects in file order
        """
        nodes = []
        for block_number, block in enumerate(
            _split_blocks(_normalize_newlines(content)), start=1
        ):
            node = SRTParser._parse_block(block)
            if node is None:
                first_line = block.split("\n", 1)[0]
                logger.warning(
                    f"Skipping invalid subtitle block #{block_number}: {first_line!r}"
                )
                continue
            nodes.append(node)

        logger.info(f"Parsed {len(nodes)} subtitle nodes")
        return nodes

    @staticmethod
    def format(nodes: Sequence[Node]) -> str:
        """
        Format nodes back to SRT with one blank line between entries.

        Args:
            nodes: Nodes to serialize, in output order

        Returns:
            SRT content ending with a single newline, or "" for no nodes
        """
        if not nodes:
            return ""

        formatted = "\n\n".join(str(node).rstrip("\n") for node in nodes)
        return formatted + "\n"


# Conversion rules. Each converter returns the cues it could recover, or an
# empty list when the text is not in its format.

_LENIENT_TIMESTAMP_LINE = re.compile(
    r"^\s*(\d{1,2}:\d{1,2}:\d{1,2}[,.]\d{1,3})\s*-->\s*"
    r"(\d{1,2}:\d{1,2}:\d{1,2}[,.]\d{1,3})(?:\s.*)?$"
)
_WEBVTT_HEADER = re.compile(r"^WEBVTT(?:\s|$)")
_WEBVTT_CUE_TAG = re.compile(
    r"</?(?:c|v|lang|ruby|rt)(?:[.\s][^>]*)?>|<\d{1,2}:[\d:.]+>"
)
_ASS_OVERRIDE_TAG = re.compile(r"\{[^}]*\}")
_ASS_DEFAULT_FIELDS = [
    "layer",
    "start",
    "end",
    "style",
    "name",
    "marginl",
    "marginr",
    "marginv",
    "effect",
    "text",
]
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _convert_lenient_srt(text: str) -> List[Node]:
    """SRT with loose timestamps (``.`` separator, short fields, cue settings)."""

    def _canonical_time_line(match: "re.Match[str]") -> str:
        start_ms = TimestampUtils.clock_to_ms(match.group(1))
        end_ms = TimestampUtils.clock_to_ms(match.group(2))
        return str(TimeRange.from_milliseconds(start_ms or 0, end_ms or 0))

    lines = [
        _LENIENT_TIMESTAMP_LINE.sub(_canonical_time_line, line)
        for line in text.split("\n")
    ]
    return SRTParser.parse("\n".join(lines))


def _convert_webvtt(text: str) -> List[Node]:
    """WebVTT cues, renumbered from 1."""
    if not _WEBVTT_HEADER.match(text):
        return []

    nodes = []
    for block in _split_blocks(text):
        lines = block.split("\n")
        timing_index = next(
            (i for i, line in enumerate(lines) if "-->" in line), None
        )
        if timing_index is None:
            # Header, NOTE, STYLE and REGION blocks
            continue

        start_value, _, rest = lines[timing_index].partition("-->")
        end_tokens = rest.split()
        if not end_tokens:
            continue
        start_ms = TimestampUtils.clock_to_ms(start_value)
        end_ms = TimestampUtils.clock_to_ms(end_tokens[0])
        if start_ms is None or end_ms is None:
            continue

        content_lines = [
            _WEBVTT_CUE_TAG.sub("", line).strip()
            for line in lines[timing_index + 1 :]
        ]
        content = "\n".join(line for line in content_lines if line)
        if not content:
            continue

        nodes.append(
            Node(
                pos=len(nodes) + 1,
                time_range=TimeRange.from_milliseconds(start_ms, end_ms),
                content=content,
            )
        )
    return nodes


def _convert_ass(text: str) -> List[Node]:
    """ASS/SSA ``Dialogue`` events, ordered by start time and renumbered."""
    fields = list(_ASS_DEFAULT_FIELDS)
    in_events = False
    events: List[Tuple[int, int, str]] = []

    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if line.startswith("[") and line.endswith("]"):
            in_events = line.lower() == "[events]"
            continue
        if not in_events:
            continue

        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        if key == "format":
            fields = [field.strip().lower() for field in value.split(",")]
            continue
        if key != "dialogue":
            continue
        if not {"start", "end", "text"} <= set(fields):
            return []

        # Text is the last field and may itself contain commas
        values = [v.strip() for v in value.split(",", len(fields) - 1)]
        if len(values) != len(fields):
            continue
        record = dict(zip(fields, values))
        start_ms = TimestampUtils.clock_to_ms(record["start"])
        end_ms = TimestampUtils.clock_to_ms(record["end"])
        if start_ms is None or end_ms is None:
            continue

        dialogue = _ASS_OVERRIDE_TAG.sub("", record["text"])
        dialogue = (
            dialogue.replace("\\N", "\n").replace("\\n", "\n").replace("\\h", " ")
        )
        content = "\n".join(
            part.strip() for part in dialogue.split("\n") if part.strip()
        )
        if content:
            events.append((start_ms, end_ms, content))

    events.sort(key=lambda event: event[0])
    return [
        Node(
            pos=pos,
            time_range=TimeRange.from_milliseconds(start_ms, end_ms),
            content=content,
        )
        for pos, (start_ms, end_ms, content) in enumerate(events, start=1)
    ]


def _convert_plain_text(text: str) -> List[Node]:
    """
    One cue per non-empty line, evenly spaced from 00:00:00,000.

    The timing is synthetic. Text that mentions ``-->`` is broken subtitle
    timing rather than prose, and control characters mean binary data;
    neither is converted.
    """
    if "-->" in text or _CONTROL_CHARS.search(text):
        return []

    step_ms = PLAIN_TEXT_CUE_SECONDS * 1000
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    return [
        Node(
            pos=pos,
            time_range=TimeRange.from_milliseconds(
                (pos - 1) * step_ms, pos * step_ms
            ),
            content=line,
        )
        for pos, line in enumerate(lines, start=1)
    ]


@dataclass(frozen=True)
class ConversionRule:
    """A named converter from some caption convention to SRT nodes."""

    name: str
    convert: Callable[[str], List[Node]]


CONVERSION_RULES: Tuple[ConversionRule, ...] = (
    ConversionRule("webvtt", _convert_webvtt),
    ConversionRule("ass", _convert_ass),
    ConversionRule("srt", _convert_lenient_srt),
    ConversionRule("plain_text", _convert_plain_text),
)


def convert_to_srt(text: str) -> Optional[str]:
    """
    Convert non-canonical subtitle text to canonical SRT.

    Rules in :data:`CONVERSION_RULES` are tried in order and the first one
    that recovers at least one cue wins. Canonical SRT passes through the
    ``srt`` rule and comes back equivalent.

    Args:
        text: Decoded subtitle text

    Returns:
        Canonical SRT text, or None if no rule applies
    """
    if not isinstance(text, str) or not text.strip():
        return None

    normalized = _normalize_newlines(text)
    for rule in CONVERSION_RULES:
        try:
            nodes = rule.convert(normalized)
        except (ValueError, IndexError, KeyError) as e:
            logger.debug(f"Conversion rule '{rule.name}' failed: {e}")
            continue
        if nodes:
            logger.info(
                f"Converted subtitle text with '{rule.name}' rule ({len(nodes)} nodes)"
            )
            return SRTParser.format(nodes)

    logger.warning("No conversion rule applies to the subtitle text")
    return None


def to_canonical_srt(text: str) -> str:
    """
    Return ``text`` as canonical SRT, converting it when necessary.

    Raises:
        SubtitleFormatError: If the text is neither canonical nor convertible
    """
    if SRTParser.is_valid_format(text):
        return text
    converted = convert_to_srt(text)
    if converted is None:
        raise SubtitleFormatError("Cannot convert to a valid SRT file")
    return converted


def extract_text_for_translation(nodes: Sequence[Node]) -> List[str]:
    """
    Extract caption texts in order for batch translation.

    Raises:
        ValueError: If nodes is None
    """
    if nodes is None:
        raise ValueError("Nodes list cannot be None")

    return [node.content for node in nodes]


def nodes_to_trans_nodes(
    nodes: Sequence[Node], translations: Sequence[str]
) -> List[Node]:
    """
    Zip translated texts back onto their source nodes.

    The translated nodes keep ``pos`` and ``time_range`` of the originals.

    Args:
        nodes: Source nodes of one batch
        translations: Translated texts aligned 1:1 with ``nodes``

    Returns:
        New list of nodes with translated content

    Raises:
        TranslationCountMismatchError: If the counts differ
    """
    if nodes is None or translations is None:
        raise ValueError("Nodes and translations cannot be None")

    if len(nodes) != len(translations):
        raise TranslationCountMismatchError(
            expected_count=len(nodes), actual_count=len(translations)
        )

    return [
        node.with_content(str(translation).strip())
        for node, translation in zip(nodes, translations)
    ]


def merge_bilingual(
    translated: Sequence[Node], original: Sequence[Node]
) -> List[Node]:
    """
    Combine original and translated content per cue, original first.

    A translated node is paired with the original node that has the same
    ``pos``. When there is no such original, or more than one, the
    translated node is kept as it is.

    Args:
        translated: Translated nodes
        original: Original nodes

    Returns:
        New list of nodes, one per translated node
    """
    originals_by_pos: Dict[int, List[Node]] = defaultdict(list)
    for node in original:
        originals_by_pos[node.pos].append(node)

    merged = []
    for node in translated:
        matches = originals_by_pos.get(node.pos, [])
        if len(matches) == 1:
            merged.append(
                node.with_content(
                    f"{matches[0].content}{BILINGUAL_SEPARATOR}{node.content}"
                )
            )
            continue

        if matches:
            logger.warning(
                f"⚠️  {len(matches)} original nodes share pos {node.pos}, "
                f"keeping translation only"
            )
        else:
            logger.debug(f"No original node for pos {node.pos}, keeping translation only")
        merged.append(node)

    return merged


def chunk_nodes(
    nodes: Sequence[Node], page_size: int = DEFAULT_PAGE_SIZE
) -> List[List[Node]]:
    """
    Split nodes into contiguous batches for translation.

    Args:
        nodes: All nodes of the document
        page_size: Maximum nodes per batch (must be positive)

    Returns:
        List of batches; every batch but the last has ``page_size`` nodes

    Raises:
        ValueError: If page_size is less than 1 or nodes is None
    """
    if nodes is None:
        raise ValueError("Nodes list cannot be None")

    if page_size < 1:
        raise ValueError(f"page_size must be at least 1, got {page_size}")

    if not nodes:
        return []

    batches = [list(nodes[i : i + page_size]) for i in range(0, len(nodes), page_size)]

    logger.debug(f"Split {len(nodes)} nodes into {len(batches)} batches")
    return batches


def select_page(
    nodes: Sequence[Optional[Node]], page_index: int, page_size: int = DEFAULT_PAGE_SIZE
) -> List[Optional[Node]]:
    """
    Return the slice of ``nodes`` shown on page ``page_index``.

    ``nodes`` may contain ``None`` holes (a partially translated document).
    A page without a single node is returned as an empty list.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be at least 1, got {page_size}")
    if page_index < 0:
        return []

    page = list(nodes[page_index * page_size : (page_index + 1) * page_size])
    if all(node is None for node in page):
        return []
    return page


def page_count(total: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    """Number of pages needed for ``total`` nodes."""
    return MathUtils.ceil_div(total, page_size)
