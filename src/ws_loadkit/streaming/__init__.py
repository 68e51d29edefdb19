"""Splitting of WebSocket text messages into JSON objects."""

from .splitter import StreamSplitter, SplitResult, ScanState, split_json_objects, split_messages

__all__ = ["StreamSplitter", "SplitResult", "ScanState", "split_json_objects", "split_messages"]
