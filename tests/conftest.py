"""
Shared fixtures.
"""

import time

import pytest


@pytest.fixture(autouse=True)
def utc_local_time(monkeypatch):
    """Pin the process timezone so local-time period labels are stable."""
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
