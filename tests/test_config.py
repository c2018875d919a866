"""Tests for app.config module."""
import importlib
import os

import pytest


def test_workflow_defaults():
    """Workflow limits default to the marketplace rules."""
    from app.config import (
        MAX_PROPOSALS_PER_TECHNICIAN,
        MIN_PROPOSAL_SPACING_MINUTES,
        REQUEST_TTL_HOURS,
        SCHEDULE_CONFLICT_WINDOW_HOURS,
    )
    assert REQUEST_TTL_HOURS == int(os.getenv("REQUEST_TTL_HOURS", "24"))
    assert MAX_PROPOSALS_PER_TECHNICIAN == int(os.getenv("MAX_PROPOSALS_PER_TECHNICIAN", "3"))
    assert MIN_PROPOSAL_SPACING_MINUTES == int(os.getenv("MIN_PROPOSAL_SPACING_MINUTES", "30"))
    assert SCHEDULE_CONFLICT_WINDOW_HOURS == int(os.getenv("SCHEDULE_CONFLICT_WINDOW_HOURS", "3"))


def test_working_hours_window():
    from app.config import WORKING_HOURS_END, WORKING_HOURS_START
    assert 0 <= WORKING_HOURS_START < WORKING_HOURS_END <= 24


def test_sweep_disabled_in_tests():
    """conftest turns the background expiry task off."""
    from app.config import EXPIRY_SWEEP_INTERVAL_SECONDS
    assert EXPIRY_SWEEP_INTERVAL_SECONDS == 0


def test_cors_origins_have_no_trailing_slash():
    from app.config import CORS_ORIGINS
    assert CORS_ORIGINS
    assert all(not origin.endswith("/") for origin in CORS_ORIGINS)


def test_inverted_working_hours_rejected(monkeypatch):
    import app.config as config

    monkeypatch.setenv("WORKING_HOURS_START", "18")
    monkeypatch.setenv("WORKING_HOURS_END", "6")
    try:
        with pytest.raises(ValueError):
            importlib.reload(config)
    finally:
        monkeypatch.undo()
        importlib.reload(config)
