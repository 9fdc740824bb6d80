"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from assignment_engine.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("RESOLVE_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("TERRITORY_USER_PICKER", raising=False)

    s = Settings(_env_file=None)

    assert s.resolve_timeout == 10.0
    assert s.conflict_retry_attempts == 3
    assert s.territory_user_picker == "first"


def test_zero_timeout_disables_deadline(monkeypatch):
    monkeypatch.setenv("RESOLVE_TIMEOUT_SECONDS", "0")

    assert Settings(_env_file=None).resolve_timeout is None


def test_cors_origins_are_split(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://crm.example.com, ,http://localhost:3000")

    assert Settings(_env_file=None).cors_origin_list == [
        "https://crm.example.com",
        "http://localhost:3000",
    ]


def test_unknown_territory_picker_is_rejected(monkeypatch):
    monkeypatch.setenv("TERRITORY_USER_PICKER", "random")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
