from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Compression core configuration loaded from environment variables."""

    # --- Batch ---
    concurrent_limit: int = 5
    max_files: int = 100
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0

    # --- Delegated calls ---
    stage_timeout_seconds: float = 60.0
    stage_threads: int = 8

    # --- Palette strategy ---
    palette_max_colors: int = 256
    refine_iterations: int = 5
    palette_dithering: bool = True
    dither_pixel_limit: int = 1_000_000

    # --- Encoders ---
    webp_method: int = 4  # Good compression, 2-3x faster than method=6
    oxipng_level: int = 2

    # --- Logging ---
    log_level: str = "ERROR"

    model_config = {"env_prefix": "", "case_sensitive": False}

    def model_post_init(self, __context) -> None:
        if self.concurrent_limit < 1:
            self.concurrent_limit = 1
        if self.palette_max_colors < 1:
            self.palette_max_colors = 1
        if self.stage_threads < 1:
            self.stage_threads = 1


settings = Settings()
