"""
Tests for splitting concatenated JSON objects.
"""

import json
import pytest

from ws_loadkit.streaming.splitter import (
    ScanState,
    SplitResult,
    StreamSplitter,
    split_json_objects,
    split_messages,
)
from ws_loadkit.utils.errors import MalformedFragment
from tests.fixtures.streaming_fixtures import StreamingFixtures


class TestStreamSplitter:
    """Test the single-pass splitter."""

    def test_empty_input(self):
        result = StreamSplitter().feed("")

        assert result.objects == []
        assert result.errors == []
        assert result.trailing == ""
        assert not result.has_trailing_fragment

    def test_single_object(self):
        assert split_json_objects('{"a":1}') == [{"a": 1}]

    def test_back_to_back_objects_keep_order(self):
        objects = [
            {"id": 1, "connect": {"client": "abc", "version": "5.0"}},
            {"push": {"channel": "personal:#user1", "pub": {"data": {"uuid": "u-1"}}}},
            {"empty": {}},
            {"list": [1, 2, {"nested": [3, {"deep": True}]}]},
        ]
        text = StreamingFixtures.concatenate(objects)

        assert split_json_objects(text) == objects

    def test_whitespace_between_objects(self):
        text = StreamingFixtures.concatenate([{"a": 1}, {"b": 2}, {"c": 3}], separator="\n ")

        assert split_json_objects(text) == [{"a": 1}, {"b": 2}, {"c": 3}]

    def test_braces_inside_strings_do_not_split(self):
        result = StreamSplitter().feed('{"a":"x}y\\"z"}')

        assert result.objects == [{"a": 'x}y"z'}]
        assert result.errors == []

    def test_escaped_backslash_before_quote_closes_string(self):
        text = '{"path":"C:\\\\"}{"b":"{"}'

        assert split_json_objects(text) == [{"path": "C:\\"}, {"b": "{"}]

    def test_unicode_content(self):
        objects = [{"text": "héllo {wörld}"}, {"emoji": "\u2603"}]
        text = "".join(json.dumps(o, ensure_ascii=False) for o in objects)

        assert split_json_objects(text) == objects

    def test_trailing_fragment_is_dropped_without_error(self):
        result = StreamSplitter().feed('{"a":1}{"b":2')

        assert result.objects == [{"a": 1}]
        assert result.errors == []
        assert result.trailing == '{"b":2'
        assert result.has_trailing_fragment

    def test_trailing_backslash_inside_string(self):
        splitter = StreamSplitter()
        result = splitter.feed('{"a":1}{"b":"x\\')

        assert result.objects == [{"a": 1}]
        assert result.errors == []
        assert result.has_trailing_fragment
        assert splitter.escape_next
        assert splitter.state is ScanState.IN_STRING_ESCAPED

    def test_malformed_fragment_is_reported_and_scan_continues(self):
        result = StreamSplitter().feed('{"a":}{"b":2}')

        assert result.objects == [{"b": 2}]
        assert len(result.errors) == 1

        error = result.errors[0]
        assert isinstance(error, MalformedFragment)
        assert error.fragment == '{"a":}'
        assert error.start == 0
        assert error.end == 6
        assert error.code == "MALFORMED_FRAGMENT"

    def test_multiple_malformed_fragments(self):
        result = StreamSplitter().feed(StreamingFixtures.create_malformed_message())

        assert result.objects == [
            {"id": 1, "connect": {"client": "abc"}},
            {"id": 2, "subscribe": {}},
            {"id": 3},
        ]
        assert result.dropped_count == 2
        assert [e.fragment for e in result.errors] == ['{"a":}', '{not json}']

    def test_dropped_and_incomplete_are_distinguishable(self):
        dropped = StreamSplitter().feed('{"a":}')
        incomplete = StreamSplitter().feed('{"a":')

        assert dropped.dropped_count == 1
        assert not dropped.has_trailing_fragment
        assert incomplete.dropped_count == 0
        assert incomplete.has_trailing_fragment

    def test_leading_whitespace_is_harmless(self):
        assert split_json_objects('  \n{"a":1}') == [{"a": 1}]

    def test_leading_garbage_becomes_part_of_first_fragment(self):
        result = StreamSplitter().feed('garbage{"a":1}{"b":2}')

        assert result.objects == [{"b": 2}]
        assert result.dropped_count == 1
        assert result.errors[0].fragment == 'garbage{"a":1}'

    def test_non_standard_constants_are_rejected(self):
        result = StreamSplitter().feed('{"a":NaN}{"b":Infinity}{"c":1}')

        assert result.objects == [{"c": 1}]
        assert result.dropped_count == 2

    def test_deep_nesting_does_not_raise(self):
        depth = 100000
        text = '{"a":' * depth + '1' + '}' * depth + '{"ok":true}'

        result = StreamSplitter().feed(text)

        assert result.objects[-1] == {"ok": True}
        assert result.dropped_count + len(result.objects) == 2

    def test_feed_is_stateless_across_calls(self):
        splitter = StreamSplitter()

        first = splitter.feed('{"a":{"b":')
        second = splitter.feed('1}}{"c":3}')

        assert first.objects == []
        assert first.has_trailing_fragment
        # The second call does not continue the first object
        assert second.objects == []
        assert splitter.depth == -2

    def test_state_is_reset_between_calls(self):
        splitter = StreamSplitter()
        splitter.feed('{"open":"unterminated')

        assert splitter.feed('{"a":1}').objects == [{"a": 1}]

    def test_large_batch(self):
        message = StreamingFixtures.create_batched_message("personal:#user1", count=500)

        result = StreamSplitter().feed(message)

        assert result.parsed_count == 500
        assert result.ok

    def test_result_summary(self):
        result = StreamSplitter().feed('{"a":}{"b":2}{"c"')

        summary = result.to_dict()
        assert summary["parsed"] == 1
        assert summary["dropped"] == 1
        assert summary["incomplete"] is True
        assert summary["errors"][0]["start"] == 0
        json.dumps(summary)


class TestMalformedFragment:
    """Test malformed fragment errors."""

    def test_preview_is_truncated(self):
        fragment = "{" + "x" * 1000 + "}"
        error = MalformedFragment(fragment=fragment, start=0, end=len(fragment), reason="bad")

        assert len(error.preview) == MalformedFragment.PREVIEW_LENGTH + 3
        assert error.preview.endswith("...")

    def test_to_dict(self):
        error = StreamSplitter().feed('{"a":}').errors[0]

        info = error.to_dict()["error"]
        assert info["code"] == "MALFORMED_FRAGMENT"
        assert info["severity"] == "warning"
        assert info["category"] == "parsing"
        assert info["context"]["component"] == "splitter"
        assert info["context"]["metadata"]["preview"] == '{"a":}'


class TestSplitMessages:
    """Test splitting a stream of WebSocket messages."""

    @pytest.mark.asyncio
    async def test_split_each_message(self):
        messages = [
            StreamingFixtures.concatenate([{"a": 1}, {"b": 2}]),
            StreamingFixtures.concatenate([{"c": 3}]),
        ]

        collected = []
        async for obj in split_messages(StreamingFixtures.create_async_messages(messages)):
            collected.append(obj)

        assert collected == [{"a": 1}, {"b": 2}, {"c": 3}]

    @pytest.mark.asyncio
    async def test_bytes_messages(self):
        messages = ['{"a":1}{"b":2}']

        collected = [
            obj async for obj in split_messages(
                StreamingFixtures.create_async_messages(messages, as_bytes=True)
            )
        ]

        assert collected == [{"a": 1}, {"b": 2}]

    @pytest.mark.asyncio
    async def test_undecodable_message_is_skipped(self):
        async def frames():
            yield b'{"a":1}'
            yield b'\xff{"bad":1}'
            yield b'{"c":3}'

        collected = [obj async for obj in split_messages(frames())]

        assert collected == [{"a": 1}, {"c": 3}]

    @pytest.mark.asyncio
    async def test_errors_go_to_handler(self):
        errors = []

        async def on_error(error: MalformedFragment) -> None:
            errors.append(error)

        messages = ['{"a":}{"b":2}', '{"c":', '{"d":4}']
        collected = [
            obj async for obj in split_messages(
                StreamingFixtures.create_async_messages(messages),
                error_handler=on_error
            )
        ]

        assert collected == [{"b": 2}, {"d": 4}]
        assert len(errors) == 1
        assert errors[0].fragment == '{"a":}'


def test_split_result_defaults():
    result = SplitResult()

    assert result.ok
    assert result.parsed_count == 0
    assert result.dropped_count == 0
