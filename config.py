"""
config.py
Runtime settings, read from environment variables with development defaults.
"""

from __future__ import annotations

import os
from pathlib import Path

# SQLite file holding users + subscriptions
DB_FILE = Path(os.environ.get("SUBTRACK_DB_FILE") or Path(__file__).with_name("subscriptions.db"))

LOG_LEVEL = os.environ.get("SUBTRACK_LOG_LEVEL", "INFO").upper()

PAGE_TITLE = os.environ.get("SUBTRACK_PAGE_TITLE", "Subscription Tracker")
