"""ws-loadkit - entry point for python -m ws_loadkit"""

from .cli import main

if __name__ == "__main__":
    main()
