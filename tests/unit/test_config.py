"""Unit tests for settings."""

import pytest
from pydantic import ValidationError

from nexus_decompose.core.config import Settings, get_settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test defaults when the environment is empty."""
        monkeypatch.delenv("NEXUS_LOG_LEVEL", raising=False)
        monkeypatch.delenv("NEXUS_DEBUG", raising=False)

        settings = Settings(_env_file=None)

        assert settings.nexus_log_level == "INFO"
        assert settings.nexus_max_batch_size == 7
        assert settings.nexus_min_context_lines == 200
        assert settings.nexus_max_context_lines == 2000
        assert settings.nexus_context_mode == "adaptive"
        assert settings.nexus_default_size_category == "M"
        assert settings.nexus_doc_size_category == "XS"
        assert settings.nexus_high_confidence_threshold == 85
        assert settings.nexus_low_confidence_threshold == 70

    def test_environment_override(
        self, monkeypatch: pytest.MonkeyPatch, mock_settings: None
    ) -> None:
        """Test settings are read from the environment and cached."""
        monkeypatch.setenv("NEXUS_MAX_BATCH_SIZE", "3")
        monkeypatch.setenv("NEXUS_CONTEXT_MODE", "minimal")

        settings = get_settings()

        assert settings.nexus_max_batch_size == 3
        assert settings.nexus_context_mode == "minimal"
        assert get_settings() is settings

    @pytest.mark.parametrize(
        "overrides",
        [
            {"nexus_max_batch_size": 0},
            {"nexus_context_mode": "huge"},
            {"nexus_default_size_category": "XL"},
            {"nexus_min_context_lines": 500, "nexus_max_context_lines": 100},
            {"nexus_low_confidence_threshold": 90, "nexus_high_confidence_threshold": 80},
        ],
    )
    def test_invalid_values(self, overrides: dict) -> None:
        """Test invalid configurations are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)
