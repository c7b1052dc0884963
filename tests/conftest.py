"""
Shared test setup.

Settings are read once at import time, so the required environment is
filled in before any email_genie module is imported.
"""

import os
import tempfile

os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("API_SECRET_KEY", "test-api-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("DATA_PATH", os.path.join(tempfile.mkdtemp(prefix="email-genie-"), "store.json"))

import pytest

from email_genie.logging.config import setup_logging


@pytest.fixture(autouse=True)
def init_logging():
    setup_logging("debug")
