"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

from torrent_courier.exceptions import UnknownCategoryError

# Download categories accepted by the add command. Each one maps to a
# sub-directory of the daemon's download directory.
CATEGORIES = ("MOVIE", "TV SHOW", "MUSIC", "AUDIOBOOK", "BOOK", "SOFTWARE")


def resolve_category(raw: str) -> str:
    """Normalizes a user-typed category and checks it against CATEGORIES."""
    category = raw.strip().upper()
    if category not in CATEGORIES:
        raise UnknownCategoryError(raw)
    return category


def category_sub_dir(category: str) -> str:
    """Returns the download sub-directory used for a category."""
    return category.lower()


class CourierConfig(BaseModel):
    """A validated configuration model for the application."""

    # Daemon
    daemon_url: str = "http://localhost:9091"
    daemon_username: str = ""
    daemon_password: str = Field("", repr=False)
    download_dir: str = "/downloads/complete"
    rpc_timeout: float = 10.0
    max_session_retries: int = 3

    # Feed scanning
    rss_period: float = 900.0
    history_length: int = 1000
    feed_timeout: float = 30.0
    local_download_dir: str = "downloads"

    # Scrape loop
    scrape_min_period: float = 2.0
    scrape_max_period: float = 300.0

    # Notifications
    private_channel_ttl: float = 86400.0
    gc_period: float = 3600.0

    # Storage
    database_path: str = ""

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("daemon_url")
    @classmethod
    def validate_daemon_url(cls, v: str) -> str:
        """Ensures the daemon URL is an absolute http(s) URL without a trailing slash."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Daemon URL must be an http(s) URL, got: {v!r}")
        return v.rstrip("/")

    @field_validator("download_dir")
    @classmethod
    def validate_download_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Daemon download directory is required.")
        return v

    @field_validator(
        "rpc_timeout",
        "rss_period",
        "feed_timeout",
        "scrape_min_period",
        "scrape_max_period",
        "private_channel_ttl",
        "gc_period",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Periods and timeouts must be greater than zero.")
        return v

    @field_validator("max_session_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        """Keeps the 409 retry loop bounded."""
        if v < 1 or v > 10:
            raise ValueError("max_session_retries must be between 1 and 10.")
        return v

    @field_validator("history_length")
    @classmethod
    def validate_history_length(cls, v: int) -> int:
        if v < 1:
            raise ValueError("history_length must be at least 1.")
        return v

    @model_validator(mode="after")
    def validate_scrape_periods(self) -> "CourierConfig":
        """Checks that the scrape backoff bounds are ordered."""
        if self.scrape_min_period > self.scrape_max_period:
            raise ValueError(
                "scrape_min_period cannot be larger than scrape_max_period."
            )
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
