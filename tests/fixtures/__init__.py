"""
Test fixtures for ws-loadkit.
"""

from .streaming_fixtures import StreamingFixtures

__all__ = ["StreamingFixtures"]
