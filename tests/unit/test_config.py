"""Unit tests for decoder configuration and environment overrides."""

from __future__ import annotations

import dataclasses

import pytest

from pcicaps.config import DEFAULT_CONFIG, ENV_FAIL_FAST, ENV_STRICT_ALIGNMENT, DecoderConfig


class TestDecoderConfig:
    """Test DecoderConfig defaults and from_env()."""

    def test_defaults(self):
        assert DEFAULT_CONFIG.strict_alignment is False
        assert DEFAULT_CONFIG.fail_fast is False
        assert DEFAULT_CONFIG.vendor_id is None
        assert DEFAULT_CONFIG.device_id is None

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_CONFIG.fail_fast = True

    def test_from_env_unset(self, monkeypatch):
        monkeypatch.delenv(ENV_STRICT_ALIGNMENT, raising=False)
        monkeypatch.delenv(ENV_FAIL_FAST, raising=False)
        assert DecoderConfig.from_env() == DecoderConfig()

    @pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
    def test_from_env_truthy(self, monkeypatch, value):
        monkeypatch.setenv(ENV_STRICT_ALIGNMENT, value)
        monkeypatch.setenv(ENV_FAIL_FAST, value)
        config = DecoderConfig.from_env()
        assert config.strict_alignment is True
        assert config.fail_fast is True

    @pytest.mark.parametrize("value", ["0", "false", "", "maybe"])
    def test_from_env_falsy(self, monkeypatch, value):
        monkeypatch.setenv(ENV_FAIL_FAST, value)
        assert DecoderConfig.from_env().fail_fast is False

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv(ENV_FAIL_FAST, "1")
        config = DecoderConfig.from_env(fail_fast=False, vendor_id=0x1AF4)
        assert config.fail_fast is False
        assert config.vendor_id == 0x1AF4
