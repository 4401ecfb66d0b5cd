"""Unit tests for configuration models and loading."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from deep_search.config import ConfigLoader, SearchConfig, load_config
from deep_search.config.models import DEFAULT_EXCLUDE_PATTERNS
from deep_search.errors import ConfigurationError


class TestSearchConfig:
    """Tests for SearchConfig defaults and validation."""

    def test_defaults(self) -> None:
        """Test SearchConfig default values."""
        config = SearchConfig()

        assert config.debounce_seconds == 0.3
        assert config.concurrency == 4
        assert config.match_limits == [5000, 10000]
        assert config.max_file_size == 1048576
        assert config.cache_max_size == 20
        assert config.use_gitignore is True
        assert config.exclude_patterns == DEFAULT_EXCLUDE_PATTERNS

    def test_default_excludes_are_not_shared(self) -> None:
        """Test each config gets its own exclude list."""
        first = SearchConfig()
        first.exclude_patterns.append("*.tmp")
        assert "*.tmp" not in SearchConfig().exclude_patterns

    @pytest.mark.parametrize(
        "limits", [[0, 10], [10, 5], [100, 100]]
    )
    def test_invalid_match_limits(self, limits) -> None:
        """Test non-positive or non-ascending match limits are rejected."""
        with pytest.raises(ValidationError):
            SearchConfig(match_limits=limits)

    def test_empty_match_limits_disable_backpressure(self) -> None:
        """Test an empty match limit list is accepted."""
        assert SearchConfig(match_limits=[]).match_limits == []

    def test_log_level_is_normalized(self) -> None:
        """Test log levels are upper-cased and validated."""
        assert SearchConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            SearchConfig(log_level="chatty")

    def test_chunk_overlap_must_be_smaller_than_chunk(self) -> None:
        """Test chunk overlap must be smaller than the chunk size."""
        with pytest.raises(ValidationError):
            SearchConfig(chunk_size=2048, chunk_overlap=2048)

    def test_concurrency_bounds(self) -> None:
        """Test concurrency below 1 is rejected."""
        with pytest.raises(ValidationError):
            SearchConfig(concurrency=0)


class TestEnvironmentOverrides:
    """Tests for DEEP_SEARCH_* environment variables."""

    def test_scalar_and_list_values(self, monkeypatch) -> None:
        """Test DEEP_SEARCH_* variables override scalar and list fields."""
        monkeypatch.setenv("DEEP_SEARCH_CONCURRENCY", "8")
        monkeypatch.setenv("DEEP_SEARCH_MATCH_LIMITS", "100, 200")
        monkeypatch.setenv("DEEP_SEARCH_USE_GITIGNORE", "false")

        config = SearchConfig.from_env()

        assert config.concurrency == 8
        assert config.match_limits == [100, 200]
        assert config.use_gitignore is False

    def test_unrelated_variables_are_ignored(self, monkeypatch) -> None:
        """Test unknown DEEP_SEARCH_* variables are ignored."""
        monkeypatch.setenv("DEEP_SEARCH_UNKNOWN", "1")
        assert "unknown" not in SearchConfig.env_overrides()


class TestConfigLoader:
    """Tests for merging project file, environment and overrides."""

    def write_config(self, root: Path, data) -> Path:
        path = root / ".deep-search.json"
        path.write_text(json.dumps(data))
        return path

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        """Test loading without a project file yields defaults."""
        assert ConfigLoader(tmp_path).load() == SearchConfig()

    def test_project_file(self, tmp_path: Path) -> None:
        """Test settings are read from .deep-search.json."""
        self.write_config(tmp_path, {"concurrency": 2, "cache_max_size": 5})

        config = ConfigLoader(tmp_path).load()

        assert config.concurrency == 2
        assert config.cache_max_size == 5

    def test_precedence(self, tmp_path: Path, monkeypatch) -> None:
        """Test overrides beat environment, which beats the project file."""
        self.write_config(tmp_path, {"concurrency": 2, "cache_max_size": 5})
        monkeypatch.setenv("DEEP_SEARCH_CONCURRENCY", "6")

        config = ConfigLoader(tmp_path).load(cache_max_size=9, max_file_size=None)

        assert config.concurrency == 6
        assert config.cache_max_size == 9
        assert config.max_file_size == 1048576

    def test_explicit_config_file(self, tmp_path: Path) -> None:
        """Test an explicit config file path is honored."""
        custom = tmp_path / "custom.json"
        custom.write_text(json.dumps({"debounce_seconds": 1.5}))

        config = ConfigLoader(tmp_path, config_file=custom).load()
        assert config.debounce_seconds == 1.5

    def test_invalid_values_fall_back_to_defaults(self, tmp_path: Path) -> None:
        """Test invalid fields are dropped while valid ones apply."""
        self.write_config(tmp_path, {"concurrency": 0, "cache_max_size": 3})

        config = ConfigLoader(tmp_path).load()

        assert config.concurrency == 4
        assert config.cache_max_size == 3

    def test_invalid_chunking_drops_both_fields(self, tmp_path: Path) -> None:
        """Test an invalid chunk pair falls back to both defaults."""
        self.write_config(tmp_path, {"chunk_size": 2048, "chunk_overlap": 4096})

        config = ConfigLoader(tmp_path).load()

        assert config.chunk_size == SearchConfig().chunk_size
        assert config.chunk_overlap == SearchConfig().chunk_overlap

    def test_unknown_keys_are_ignored(self, tmp_path: Path) -> None:
        """Test unknown keys in the project file are ignored."""
        self.write_config(tmp_path, {"colour": "blue", "concurrency": 3})
        assert ConfigLoader(tmp_path).load().concurrency == 3

    def test_malformed_file(self, tmp_path: Path) -> None:
        """Test malformed JSON raises ConfigurationError."""
        (tmp_path / ".deep-search.json").write_text("{not json")

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader(tmp_path).load()
        assert exc_info.value.details["config_file"].endswith(".deep-search.json")

    def test_file_must_hold_an_object(self, tmp_path: Path) -> None:
        """Test a non-object project file raises ConfigurationError."""
        self.write_config(tmp_path, [1, 2, 3])

        with pytest.raises(ConfigurationError):
            ConfigLoader(tmp_path).load()

    def test_load_config_helper(self, tmp_path: Path) -> None:
        """Test the load_config convenience function."""
        self.write_config(tmp_path, {"concurrency": 2})
        assert load_config(tmp_path, cache_max_size=4).cache_max_size == 4
        assert load_config(tmp_path).concurrency == 2
