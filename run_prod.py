#!/usr/bin/env python
"""Production server: no reload, no implicit schema creation."""

import os

os.environ["DEV__RELOAD"] = "false"
os.environ.setdefault("DEV__AUTO_CREATE_SCHEMA", "false")

from diagramsync import main

if __name__ in {"__main__", "__mp_main__"}:
    main()
