#!/usr/bin/env python
"""Development server: hot reload and DEBUG console output."""

import logging
import os

os.environ.setdefault("DEV__RELOAD", "true")
os.environ.setdefault("DEV__AUTO_CREATE_SCHEMA", "true")
os.environ.setdefault("LOG__LEVEL", "DEBUG")

from diagramsync import main

if __name__ in {"__main__", "__mp_main__"}:
    for noisy in ("watchfiles", "engineio", "socketio", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    main()
