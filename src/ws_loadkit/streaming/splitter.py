"""
Splitter for concatenated JSON objects.

WebSocket servers may pack several JSON objects into one text message with no
separator between them (`{"a":1}{"b":2}`). StreamSplitter scans the text once,
tracking brace depth and string/escape state, and parses each top-level
object as soon as its closing brace is seen.
"""

import json
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union

from ..utils.logging import get_logger
from ..utils.errors import MalformedFragment

logger = get_logger("ws-loadkit.streaming.splitter")


def _reject_constant(name: str) -> None:
    raise ValueError(f"Invalid constant {name}")


class ScanState(Enum):
    """Lexical state of the scanner."""
    OUTSIDE = "outside"
    IN_STRING = "in_string"
    IN_STRING_ESCAPED = "in_string_escaped"


@dataclass
class SplitResult:
    """Outcome of splitting one text buffer."""
    objects: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[MalformedFragment] = field(default_factory=list)
    trailing: str = ""

    @property
    def parsed_count(self) -> int:
        return len(self.objects)

    @property
    def dropped_count(self) -> int:
        return len(self.errors)

    @property
    def has_trailing_fragment(self) -> bool:
        """True when the input ended inside an unfinished object."""
        return bool(self.trailing.strip())

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        """Summary suitable for logging and metrics."""
        return {
            "parsed": self.parsed_count,
            "dropped": self.dropped_count,
            "incomplete": self.has_trailing_fragment,
            "errors": [
                {"start": e.start, "end": e.end, "reason": e.reason}
                for e in self.errors
            ],
        }


class StreamSplitter:
    """Extracts top-level JSON objects from concatenated text.

    Each call to feed() starts from a clean state: objects split across two
    calls are not reassembled. An instance must not be fed from several
    threads at once.
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self.state = ScanState.OUTSIDE
        self.depth = 0
        self._fragment_start = 0

    @property
    def in_string(self) -> bool:
        return self.state is not ScanState.OUTSIDE

    @property
    def escape_next(self) -> bool:
        return self.state is ScanState.IN_STRING_ESCAPED

    def feed(self, text: str) -> SplitResult:
        """
        Split a text buffer into JSON objects.

        Args:
            text: Text holding zero or more back-to-back JSON objects

        Returns:
            SplitResult with the parsed objects in closing order, one
            MalformedFragment per balanced fragment that failed to parse,
            and the discarded unfinished tail (if any)
        """
        self._reset()
        result = SplitResult()

        for index, char in enumerate(text):
            if self.state is ScanState.IN_STRING_ESCAPED:
                self.state = ScanState.IN_STRING
            elif self.state is ScanState.IN_STRING:
                if char == "\\":
                    self.state = ScanState.IN_STRING_ESCAPED
                elif char == '"':
                    self.state = ScanState.OUTSIDE
            elif char == '"':
                self.state = ScanState.IN_STRING
            elif char == "{":
                self.depth += 1
            elif char == "}":
                self.depth -= 1
                if self.depth == 0:
                    self._flush(text, index + 1, result)

        result.trailing = text[self._fragment_start:]
        if result.has_trailing_fragment:
            logger.debug(
                "incomplete_fragment_discarded",
                length=len(result.trailing),
                depth=self.depth,
            )
        return result

    def _flush(self, text: str, end: int, result: SplitResult) -> None:
        start = self._fragment_start
        fragment = text[start:end]
        self._fragment_start = end

        try:
            result.objects.append(json.loads(fragment, parse_constant=_reject_constant))
        except (ValueError, RecursionError) as e:
            if isinstance(e, json.JSONDecodeError):
                reason = f"{e.msg} at position {e.pos}"
            else:
                reason = str(e) or type(e).__name__
            error = MalformedFragment(
                fragment=fragment,
                start=start,
                end=end,
                reason=reason,
            )
            error.context.component = "splitter"
            error.context.operation = "feed"
            result.errors.append(error)
            logger.warning(
                "malformed_fragment_dropped",
                start=start,
                end=end,
                reason=error.reason,
                preview=error.preview,
            )


def split_json_objects(text: str) -> List[Dict[str, Any]]:
    """Return the JSON objects in text; malformed fragments are dropped."""
    return StreamSplitter().feed(text).objects


async def split_messages(
    messages: AsyncIterator[Union[str, bytes]],
    error_handler: Optional[Callable[[MalformedFragment], Awaitable[None]]] = None
) -> AsyncIterator[Dict[str, Any]]:
    """
    Split every message of a message stream.

    Each message is expected to be complete; it is split on its own.
    Binary messages that are not valid UTF-8 are logged and skipped.

    Args:
        messages: Async iterator of WebSocket text messages
        error_handler: Awaited once per dropped fragment

    Yields:
        Decoded objects in arrival order
    """
    splitter = StreamSplitter()

    async for message in messages:
        if isinstance(message, bytes):
            try:
                message = message.decode('utf-8')
            except UnicodeDecodeError as e:
                logger.warning(
                    "undecodable_message_dropped",
                    length=len(message),
                    position=e.start,
                    reason=e.reason,
                )
                continue

        result = splitter.feed(message)

        for obj in result.objects:
            yield obj

        if error_handler:
            for error in result.errors:
                await error_handler(error)


__all__ = [
    'ScanState',
    'SplitResult',
    'StreamSplitter',
    'split_json_objects',
    'split_messages',
]
