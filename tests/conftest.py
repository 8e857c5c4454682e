"""Shared test configuration: environment must be set before ``notifyhub`` is imported."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_DB_PATH = Path(tempfile.gettempdir()) / "notifyhub_test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "30"
os.environ["LOG_LEVEL"] = "DEBUG"
for name in ("VAPID_PUBLIC_KEY", "VAPID_PRIVATE_KEY", "APP_TIMEZONE"):
    os.environ.pop(name, None)

from notifyhub.config import get_settings  # noqa: E402

get_settings.cache_clear()
