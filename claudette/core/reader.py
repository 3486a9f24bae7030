"""
Streaming reader for JSONL usage logs.

Decodes raw lines, reassembles records split across physical lines and
yields canonical, deduplicated usage events.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from claudette.storage.models import SourceUnavailableError, UsageEvent
from .extractor import extract_usage_event
from .fingerprint import FingerprintCache

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class BufferState(Enum):
    """State of the partial-line buffer."""
    AWAITING_LINE = "awaiting_line"
    HOLDING_FRAGMENT = "holding_fragment"


def _decode(text: str) -> Tuple[bool, Optional[Dict[str, Any]]]:
    """Try to decode one JSON document.

    Returns (parsed, record). ``parsed`` is False for invalid JSON;
    ``record`` is None when the document is valid but not an object.
    """
    try:
        value = json.loads(text)
    except ValueError:
        return False, None
    if isinstance(value, dict):
        return True, value
    return True, None


class LineAssembler:
    """Two-state buffer that joins a JSON record split across lines.

    A line that fails to decode is held and prefixed onto the next one. If
    the joined text still fails, the new line is tried on its own before
    the joined text becomes the held fragment.
    """

    def __init__(self):
        self.state = BufferState.AWAITING_LINE
        self._fragment = ""

    @property
    def fragment(self) -> str:
        return self._fragment

    def feed(self, line: str) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """Feed one raw line.

        Returns (parsed, record) for the text completed by this line; when
        ``parsed`` is False the line was buffered.
        """
        if self.state is BufferState.AWAITING_LINE:
            parsed, record = _decode(line)
            if not parsed:
                self._hold(line)
            return parsed, record

        joined = self._fragment + line
        parsed, record = _decode(joined)
        if parsed:
            self._release()
            return parsed, record

        # Only a complete object on its own replaces the held fragment; a bare
        # scalar may be the middle of the split record.
        parsed, record = _decode(line)
        if record is not None:
            logger.debug("Discarding unparseable fragment of %d bytes", len(self._fragment))
            self._release()
            return parsed, record

        self._hold(joined)
        return False, None

    def finish(self) -> Optional[str]:
        """Close the stream, returning any fragment that never parsed."""
        leftover = self._fragment if self.state is BufferState.HOLDING_FRAGMENT else None
        self._release()
        return leftover

    def _hold(self, text: str) -> None:
        self.state = BufferState.HOLDING_FRAGMENT
        self._fragment = text

    def _release(self) -> None:
        self.state = BufferState.AWAITING_LINE
        self._fragment = ""


def iter_usage_events(
    lines: Iterable[str],
    project: str,
    cache: FingerprintCache,
) -> Iterator[UsageEvent]:
    """Yield canonical, deduplicated usage events from raw lines.

    Malformed lines, records without usage, zero-token records and
    duplicates are skipped silently; one bad line never fails the source.

    Args:
        lines: Raw lines from one source, in file order
        project: Identifier of the project owning the source
        cache: Fingerprint cache shared by the logical scan
    """
    assembler = LineAssembler()
    for line in lines:
        if not line:
            continue

        parsed, record = assembler.feed(line)
        if not parsed or record is None:
            continue

        event = extract_usage_event(record, project)
        if event is None:
            continue

        if not cache.check_and_add(event):
            continue

        yield event

    leftover = assembler.finish()
    if leftover is not None:
        logger.debug("Dropping %d bytes of unparseable trailing data", len(leftover))


def read_log_file(
    path: PathLike,
    project: str,
    cache: Optional[FingerprintCache] = None,
) -> List[UsageEvent]:
    """Read every usage event from one JSONL file.

    Args:
        path: Path to the log file
        project: Identifier of the project owning the file
        cache: Fingerprint cache; a fresh one is used when omitted

    Returns:
        Events in file order. A read error partway through the file ends
        the scan and keeps the events read up to that point.

    Raises:
        SourceUnavailableError: If the file cannot be opened
    """
    if cache is None:
        cache = FingerprintCache()

    try:
        f = open(path, "r", encoding="utf-8", errors="replace")
    except OSError as e:
        raise SourceUnavailableError(str(path), e.strerror or str(e)) from e

    events: List[UsageEvent] = []
    with f:
        try:
            for event in iter_usage_events(f, project, cache):
                events.append(event)
        except OSError as e:
            logger.warning(
                "Read error in %s after %d events, keeping them: %s", path, len(events), e
            )
    return events


def read_sources(
    sources: Iterable[Tuple[str, PathLike]],
    cache: FingerprintCache,
) -> List[UsageEvent]:
    """Read events from many (project, path) sources with one shared cache.

    A source that cannot be read contributes zero events.
    """
    events: List[UsageEvent] = []
    for project, path in sources:
        try:
            events.extend(read_log_file(path, project, cache))
        except SourceUnavailableError as e:
            logger.warning("Skipping %s", e)
    return events
