"""
ws-loadkit - Utilities for a WebSocket broadcast load-generation client.

- Splitting of WebSocket text messages holding several JSON objects
- Compact HS256 connection tokens
- Channel planning and publication accounting for the load scenario
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
