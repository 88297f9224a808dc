"""Generic stream driver.

:class:`StreamDriver` runs buffer -> classifier -> extractor for one streamed
response.  Provider specifics come from a :class:`StreamCodec`; the driver
itself knows nothing about either wire format.

States:
  awaiting     - no complete frame buffered, waiting for the next read
  dispatching  - draining complete frames one at a time, in arrival order
  draining     - transport ended, flushing the residual buffer
  done         - terminal frame, error, or end of stream; input is ignored
"""

from __future__ import annotations

import enum
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Protocol

from llmrelay.errors import DecodeError, ProviderError
from llmrelay.stream.buffer import Frame, FrameBuffer
from llmrelay.stream.classify import ClassifiedEvent, EventKind
from llmrelay.stream.extract import ToolCallAccumulator
from llmrelay.types import Fragment, FragmentKind, StreamSummary

_logger = logging.getLogger(__name__)

Sink = Callable[[Fragment], None]

DEFAULT_MAX_DECODE_ERRORS = 32


class Classifier(Protocol):
    def classify(self, frame: Frame) -> ClassifiedEvent: ...


class Extractor(Protocol):
    def extract(self, event: ClassifiedEvent) -> list[Fragment]: ...


@dataclass(frozen=True)
class StreamCodec:
    """Provider capabilities the driver is parameterised over."""

    name: str
    new_buffer: Callable[[], FrameBuffer]
    classifier: Classifier
    extractor: Extractor


class DriverState(enum.Enum):
    AWAITING = "awaiting"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    DONE = "done"


class StreamDriver:
    """Decode one streamed response into fragments.

    Parameters
    ----------
    codec:
        Framing, classification and extraction rules for the provider.
    sink:
        Optional callable invoked once per non-empty fragment, synchronously
        and in arrival order.
    verbose:
        Also deliver every raw frame as a ``RAW`` fragment before its decoded
        fragments.  Terminal and error frames are still honoured.
    max_decode_errors:
        Number of consecutive undecodable frames after which the stream fails
        with :class:`~llmrelay.errors.DecodeError`.  ``None`` never escalates.
    """

    def __init__(
        self,
        codec: StreamCodec,
        sink: Sink | None = None,
        *,
        verbose: bool = False,
        max_decode_errors: int | None = DEFAULT_MAX_DECODE_ERRORS,
    ) -> None:
        self.codec = codec
        self.verbose = verbose
        self.max_decode_errors = max_decode_errors
        self.state = DriverState.AWAITING
        self._sink = sink
        self._buffer = codec.new_buffer()
        self._tools = ToolCallAccumulator()
        self._stop_reason = ""
        self._usage: dict[str, int] = {}
        self._fragments = 0
        self._ignored = 0
        self._consecutive_errors = 0
        self._terminated = False

    @property
    def done(self) -> bool:
        return self.state is DriverState.DONE

    # ------------------------------------------------------------------
    # Push interface
    # ------------------------------------------------------------------

    def feed(self, chunk: bytes) -> list[Fragment]:
        """Append *chunk* and dispatch every frame it completes.

        Returns the fragments emitted for this chunk.  Raises
        :class:`~llmrelay.errors.ProviderError` on an error frame; fragments
        before it have already reached the sink.
        """
        if not self._append(chunk):
            return []
        return list(self._drain())

    def finish(self) -> StreamSummary:
        """Signal end of transport and return the summary."""
        if not self.done:
            for _ in self._flush():
                pass
        return self.summary()

    # ------------------------------------------------------------------
    # Pull interface
    # ------------------------------------------------------------------

    def iter_fragments(self, chunks: Iterable[bytes]) -> Iterator[Fragment]:
        """Lazily decode *chunks*; closing the iterator stops reading."""
        for chunk in chunks:
            if self.done:
                break
            if self._append(chunk):
                yield from self._drain()
        if not self.done:
            yield from self._flush()

    async def aiter_fragments(
        self, chunks: AsyncIterable[bytes],
    ) -> AsyncIterator[Fragment]:
        """Async counterpart of :meth:`iter_fragments`."""
        async for chunk in chunks:
            if self.done:
                break
            if self._append(chunk):
                for fragment in self._drain():
                    yield fragment
        if not self.done:
            for fragment in self._flush():
                yield fragment

    def run(self, chunks: Iterable[bytes], sink: Sink | None = None) -> StreamSummary:
        """Consume *chunks* to the end, pushing fragments to the sink."""
        if sink is not None:
            self._sink = sink
        for _ in self.iter_fragments(chunks):
            pass
        return self.summary()

    async def arun(
        self, chunks: AsyncIterable[bytes], sink: Sink | None = None,
    ) -> StreamSummary:
        if sink is not None:
            self._sink = sink
        async for _ in self.aiter_fragments(chunks):
            pass
        return self.summary()

    def summary(self) -> StreamSummary:
        usage = dict(self._usage)
        if "total_tokens" not in usage and (
            "prompt_tokens" in usage or "completion_tokens" in usage
        ):
            usage["total_tokens"] = (
                usage.get("prompt_tokens", 0) + usage.get("completion_tokens", 0)
            )
        return StreamSummary(
            stop_reason=self._stop_reason,
            usage=usage,
            fragments=self._fragments,
            ignored_frames=self._ignored,
            tool_calls=tuple(self._tools.finalize()),
            terminated=self._terminated,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append(self, chunk: bytes) -> bool:
        if self.done:
            _logger.debug("Ignoring %d bytes after end of stream", len(chunk))
            return False
        if not chunk:
            return False
        self._buffer.append(chunk)
        self.state = DriverState.DISPATCHING
        return True

    def _drain(self) -> Iterator[Fragment]:
        while self.state is DriverState.DISPATCHING:
            frame = self._buffer.next_frame()
            if frame is None:
                self.state = DriverState.AWAITING
                return
            yield from self._dispatch(frame)

    def _flush(self) -> Iterator[Fragment]:
        self.state = DriverState.DRAINING
        frame = self._buffer.flush()
        if frame is not None:
            _logger.debug("Decoding residual frame at end of stream")
            yield from self._dispatch(frame)
        self.state = DriverState.DONE

    def _dispatch(self, frame: Frame) -> Iterator[Fragment]:
        if self.verbose:
            yield self._emit(Fragment(FragmentKind.RAW, frame.raw))

        event = self.codec.classifier.classify(frame)
        if event.usage:
            self._usage.update(event.usage)
        if event.stop_reason:
            self._stop_reason = event.stop_reason

        if event.kind is EventKind.UNPARSED:
            self._ignored += 1
            self._consecutive_errors += 1
            if (
                self.max_decode_errors is not None
                and self._consecutive_errors >= self.max_decode_errors
            ):
                self.state = DriverState.DONE
                raise DecodeError(
                    f"{self._consecutive_errors} consecutive undecodable "
                    f"{self.codec.name} stream frames"
                )
            return
        self._consecutive_errors = 0

        if event.kind is EventKind.ERROR:
            self.state = DriverState.DONE
            raise event.error or ProviderError("error", event.raw)

        if event.kind is EventKind.TERMINAL:
            _logger.debug("Terminal frame; stream complete")
            self._terminated = True
            self.state = DriverState.DONE
            return

        if event.kind is EventKind.CONTROL:
            _logger.debug("Control frame: %s", event.event)

        for fragment in self.codec.extractor.extract(event):
            if fragment.text:
                yield self._emit(fragment)

    def _emit(self, fragment: Fragment) -> Fragment:
        self._fragments += 1
        self._tools.feed(fragment)
        if self._sink is not None:
            self._sink(fragment)
        return fragment
