"""Tests for environment-driven settings."""

from config import Settings


def test_defaults(monkeypatch):
    for name in ("CONCURRENT_LIMIT", "MAX_FILES", "MAX_RETRIES", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    s = Settings()
    assert s.concurrent_limit == 5
    assert s.max_files == 100
    assert s.max_retries == 3
    assert s.retry_backoff_seconds == 1.0
    assert s.stage_timeout_seconds == 60.0
    assert s.stage_threads == 8
    assert s.palette_max_colors == 256
    assert s.refine_iterations == 5
    assert s.palette_dithering is True
    assert s.dither_pixel_limit == 1_000_000
    assert s.webp_method == 4
    assert s.oxipng_level == 2
    assert s.log_level == "ERROR"


def test_env_override_is_case_insensitive(monkeypatch):
    monkeypatch.setenv("concurrent_limit", "8")
    monkeypatch.setenv("PALETTE_DITHERING", "false")
    s = Settings()
    assert s.concurrent_limit == 8
    assert s.palette_dithering is False


def test_limits_are_clamped(monkeypatch):
    monkeypatch.setenv("CONCURRENT_LIMIT", "0")
    monkeypatch.setenv("PALETTE_MAX_COLORS", "-3")
    s = Settings()
    assert s.concurrent_limit == 1
    assert s.palette_max_colors == 1
