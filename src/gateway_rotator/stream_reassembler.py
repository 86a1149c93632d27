# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Normalizes heterogeneous upstream stream events into three output kinds:

- ReasoningDelta: a fragment of the model's reasoning trace
- TextDelta: a fragment of the user-visible answer
- StreamDone: terminal marker carrying usage totals

Recognized upstream event types:
- "reasoning-delta" / "reasoning"  -> ReasoningDelta
- "text-delta" / "text"            -> TextDelta
- "finish"                         -> StreamDone (at most once)
- "error"                          -> UpstreamStreamError is raised
Everything else (step boundaries, tool events, metadata) is ignored.

This is a projection, not an aggregator: nothing is buffered beyond the event
being processed. Callers that need a transcript concatenate deltas themselves.
"""

import math
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, AsyncIterator, List, Optional, Union

from .errors import UpstreamStreamError
from .types import Usage

REASONING_EVENT_TYPES = frozenset({"reasoning-delta", "reasoning"})
TEXT_EVENT_TYPES = frozenset({"text-delta", "text"})
FINISH_EVENT_TYPES = frozenset({"finish"})
ERROR_EVENT_TYPES = frozenset({"error"})

# Field names that may carry the delta text, in lookup order
DELTA_TEXT_FIELDS = ("text", "textDelta", "delta")


@dataclass(frozen=True)
class ReasoningDelta:
    text: str
    kind: str = field(default="reasoning", init=False)


@dataclass(frozen=True)
class TextDelta:
    text: str
    kind: str = field(default="text", init=False)


@dataclass(frozen=True)
class StreamDone:
    usage: Usage
    kind: str = field(default="done", init=False)


StreamEvent = Union[ReasoningDelta, TextDelta, StreamDone]


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def extract_token_count(value: Any) -> int:
    """
    Read a token count that may be a raw number or an object carrying
    `total` or `count`. Anything else counts as 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else 0
    if value is None:
        return 0

    for key in ("total", "count"):
        nested = _get(value, key)
        if isinstance(nested, bool) or not isinstance(nested, (int, float)):
            continue
        if math.isfinite(nested):
            return int(nested)
    return 0


def extract_usage(raw_usage: Any) -> Usage:
    """Build Usage from an upstream usage object, tolerating both naming schemes."""
    if raw_usage is None:
        return Usage()

    prompt = _get(raw_usage, "promptTokens")
    if prompt is None:
        prompt = _get(raw_usage, "inputTokens")
    completion = _get(raw_usage, "completionTokens")
    if completion is None:
        completion = _get(raw_usage, "outputTokens")

    prompt_tokens = extract_token_count(prompt)
    completion_tokens = extract_token_count(completion)
    reported_total = extract_token_count(_get(raw_usage, "totalTokens"))

    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=reported_total or (prompt_tokens + completion_tokens),
    )


class StreamReassembler:
    """Stateful translator from upstream events to StreamEvents."""

    def __init__(self):
        self.finished = False

    def _extract_text(self, event: Any) -> Optional[str]:
        for key in DELTA_TEXT_FIELDS:
            value = _get(event, key)
            if isinstance(value, str):
                return value
        return None

    def process_event(self, event: Any) -> List[StreamEvent]:
        """Process a single upstream event and return zero or more StreamEvents."""
        event_type = _get(event, "type")
        if not isinstance(event_type, str):
            return []

        if event_type in REASONING_EVENT_TYPES:
            text = self._extract_text(event)
            return [ReasoningDelta(text)] if text else []

        if event_type in TEXT_EVENT_TYPES:
            text = self._extract_text(event)
            return [TextDelta(text)] if text else []

        if event_type in FINISH_EVENT_TYPES:
            if self.finished:
                return []
            self.finished = True
            raw_usage = _get(event, "usage")
            if raw_usage is None:
                raw_usage = _get(event, "totalUsage")
            return [StreamDone(extract_usage(raw_usage))]

        if event_type in ERROR_EVENT_TYPES:
            error = _get(event, "error")
            message = _get(error, "message") if error is not None else None
            if not isinstance(message, str):
                message = str(error) if error is not None else "Upstream stream error"
            status = _get(error, "statusCode") if error is not None else None
            raise UpstreamStreamError(
                message, status_code=status if isinstance(status, int) else None
            )

        return []

    async def reassemble(
        self, events: AsyncIterable[Any]
    ) -> AsyncIterator[StreamEvent]:
        async for event in events:
            for output in self.process_event(event):
                yield output


async def reassemble_stream(events: AsyncIterable[Any]) -> AsyncIterator[StreamEvent]:
    """Convenience wrapper around a fresh StreamReassembler."""
    async for output in StreamReassembler().reassemble(events):
        yield output
