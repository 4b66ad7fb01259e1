from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Raised when the process cannot start with the current configuration."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Data providers
    jupiter_api_key: str = ""
    solana_tracker_api_key: str = ""
    jupiter_base_url: str = "https://api.jup.ag"
    solana_tracker_base_url: str = "https://data.solanatracker.io"
    http_timeout_seconds: float = 15.0

    # Files
    watchlist_path: str = "watchlist.txt"
    database_url: str = "sqlite+aiosqlite:///data/fallen_angel.db"

    # Detection thresholds
    min_drawdown_pct: float = 60.0
    min_volume_change_pct: float = 15.0  # tokens >= microcap threshold
    min_volume_change_pct_microcap: float = 50.0
    microcap_mcap_threshold: float = 100_000.0
    ath_window_days: int = 30
    ath_refresh_margin: float = 1.05  # refetch ATH only 5% above the cached high

    # Pacing (seconds)
    scan_interval_seconds: int = 300
    prefilter_delay_seconds: float = 1.0
    fetch_delay_seconds: float = 2.0
    ath_post_fetch_delay_seconds: float = 2.0
    ath_retry_attempts: int = 3
    ath_retry_delay_seconds: float = 3.0
    quote_retry_attempts: int = 1
    quote_retry_delay_seconds: float = 1.0
    countdown_log_seconds: int = 60

    # Telegram (optional push delivery)
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    log_level: str = "INFO"


def require_credentials(cfg: Settings) -> None:
    """Fail fast if any provider API key is missing."""
    missing = [
        name
        for name, value in (
            ("JUPITER_API_KEY", cfg.jupiter_api_key),
            ("SOLANA_TRACKER_API_KEY", cfg.solana_tracker_api_key),
        )
        if not value.strip()
    ]
    if missing:
        raise ConfigError(f"Missing credentials: {', '.join(missing)} (set them in .env)")


settings = Settings()
