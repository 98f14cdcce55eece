"""Tests for boot configuration and environment parsing."""

import pytest

from py_kernel.config import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIME_SLICE,
    DEFAULT_TOTAL_MEMORY,
    ConfigError,
    KernelConfig,
    OverlaySpec,
    parse_sync_dirs,
)

CUSTOM_MEMORY = 65536
CUSTOM_PAGE = 1024
CUSTOM_SLICE = 0.25
CUSTOM_LOG_CAPACITY = 50


class TestDefaults:
    """Verify the built-in values."""

    def test_default_config(self) -> None:
        """A bare config uses the module defaults."""
        config = KernelConfig()
        assert config.total_memory == DEFAULT_TOTAL_MEMORY
        assert config.page_size == DEFAULT_PAGE_SIZE
        assert config.time_slice == DEFAULT_TIME_SLICE
        assert config.sync_dirs == ()

    def test_empty_environment_gives_defaults(self) -> None:
        """No variables set means the default config."""
        assert KernelConfig.from_env({}) == KernelConfig()

    def test_blank_values_fall_back(self) -> None:
        """Whitespace-only variables are treated as unset."""
        env = {"PYKERNEL_MEMORY": "  ", "PYKERNEL_TIME_SLICE": ""}
        assert KernelConfig.from_env(env) == KernelConfig()


class TestFromEnv:
    """Verify environment parsing."""

    def test_numeric_overrides(self) -> None:
        """Memory, page size and time slice come from the environment."""
        env = {
            "PYKERNEL_MEMORY": str(CUSTOM_MEMORY),
            "PYKERNEL_PAGE_SIZE": str(CUSTOM_PAGE),
            "PYKERNEL_TIME_SLICE": str(CUSTOM_SLICE),
        }
        config = KernelConfig.from_env(env)
        assert config.total_memory == CUSTOM_MEMORY
        assert config.page_size == CUSTOM_PAGE
        assert config.time_slice == CUSTOM_SLICE

    def test_log_capacity_from_env(self) -> None:
        """The log ring size can be configured."""
        config = KernelConfig.from_env({"PYKERNEL_LOG_CAPACITY": str(CUSTOM_LOG_CAPACITY)})
        assert config.log_capacity == CUSTOM_LOG_CAPACITY

    def test_sync_dirs_from_env(self) -> None:
        """SYNC_DIRS becomes overlay specs."""
        config = KernelConfig.from_env({"SYNC_DIRS": "/srv/data:/mnt/data"})
        assert config.sync_dirs == (OverlaySpec("/srv/data", "/mnt/data"),)

    def test_non_integer_memory_raises(self) -> None:
        """Garbage in a numeric variable is a ConfigError."""
        with pytest.raises(ConfigError, match="PYKERNEL_MEMORY must be an integer"):
            KernelConfig.from_env({"PYKERNEL_MEMORY": "lots"})

    def test_non_numeric_slice_raises(self) -> None:
        """The time slice must parse as a float."""
        with pytest.raises(ConfigError, match="must be a number"):
            KernelConfig.from_env({"PYKERNEL_TIME_SLICE": "fast"})

    @pytest.mark.parametrize("raw", ["nan", "inf", "-inf", "Infinity"])
    def test_non_finite_slice_raises(self, raw: str) -> None:
        """NaN and infinities never reach the tick loop."""
        with pytest.raises(ConfigError, match="PYKERNEL_TIME_SLICE must be finite"):
            KernelConfig.from_env({"PYKERNEL_TIME_SLICE": raw})

    def test_non_positive_raises(self) -> None:
        """Zero and negatives are rejected."""
        with pytest.raises(ConfigError, match="must be positive"):
            KernelConfig.from_env({"PYKERNEL_PAGE_SIZE": "0"})

    def test_config_error_is_value_error(self) -> None:
        """ConfigError can be caught as ValueError."""
        assert issubclass(ConfigError, ValueError)


class TestParseSyncDirs:
    """Verify the host:virtual list format."""

    def test_empty_string(self) -> None:
        """No pairs at all."""
        assert parse_sync_dirs("") == ()

    def test_malformed_entries_skipped(self) -> None:
        """Entries without a colon are ignored; whitespace is trimmed."""
        assert parse_sync_dirs("a:/x, bogus ,b:/y") == (
            OverlaySpec("a", "/x"),
            OverlaySpec("b", "/y"),
        )

    def test_missing_side_skipped(self) -> None:
        """Pairs with an empty host or virtual path are dropped."""
        assert parse_sync_dirs(":/x,/host:,,/ok:/y") == (OverlaySpec("/ok", "/y"),)

    def test_split_on_last_colon(self) -> None:
        """Drive letters stay in the host part."""
        assert parse_sync_dirs(r"C:\data:/mnt/c") == (OverlaySpec(r"C:\data", "/mnt/c"),)
