"""Configuration management for RansomWatch RSS."""

import os
from dataclasses import dataclass

DEFAULT_POSTS_URL = "https://ransomwhat.telemetry.ltd/posts"
DEFAULT_SITE_URL = "https://thestateofcybersecurity.github.io/ransomwareRSS/"


@dataclass
class FetchConfig:
    """Configuration for the remote posts endpoint."""

    url: str = DEFAULT_POSTS_URL
    timeout: int = 30
    user_agent: str = "RansomWatch-RSS/1.0 (+feed generator)"


@dataclass
class FeedConfig:
    """Configuration for the generated RSS feed."""

    path: str = "feed.xml"
    max_items: int = 20
    title: str = "RansomWatch Feed"
    description: str = "Latest ransomware posts"
    link: str = DEFAULT_SITE_URL
    strict: bool = False

    @property
    def self_link(self) -> str:
        """Absolute URL the feed is published under."""
        return f"{self.link.rstrip('/')}/{os.path.basename(self.path)}"


@dataclass
class PageConfig:
    """Configuration for the generated HTML page."""

    path: str = "index.html"
    title: str = "RansomWatch"
    feed_href: str = "feed.xml"
    refresh_seconds: int = 60


class Config:
    """Main configuration manager."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.posts_url = os.getenv("RANSOMWATCH_POSTS_URL", DEFAULT_POSTS_URL)
        self.timeout = _env_int("RANSOMWATCH_TIMEOUT", 30)
        self.feed_path = os.getenv("RANSOMWATCH_FEED_PATH", "feed.xml")
        self.html_path = os.getenv("RANSOMWATCH_HTML_PATH", "index.html")
        self.max_items = _env_int("RANSOMWATCH_MAX_ITEMS", 20)
        self.site_url = os.getenv("RANSOMWATCH_SITE_URL", DEFAULT_SITE_URL)
        self.strict_feed = _env_bool("RANSOMWATCH_STRICT_FEED", False)
        self.refresh_seconds = _env_int("RANSOMWATCH_REFRESH_SECONDS", 60)
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        if self.max_items < 1:
            raise ValueError("RANSOMWATCH_MAX_ITEMS must be at least 1")

    def get_fetch_config(self) -> FetchConfig:
        """Get fetcher configuration."""
        return FetchConfig(url=self.posts_url, timeout=self.timeout)

    def get_feed_config(self) -> FeedConfig:
        """Get RSS feed configuration."""
        return FeedConfig(
            path=self.feed_path,
            max_items=self.max_items,
            link=self.site_url,
            strict=self.strict_feed,
        )

    def get_page_config(self) -> PageConfig:
        """Get HTML page configuration."""
        # The page fetches the feed relative to its own location
        feed_href = os.path.relpath(
            os.path.abspath(self.feed_path),
            os.path.dirname(os.path.abspath(self.html_path)),
        ).replace(os.sep, "/")
        return PageConfig(
            path=self.html_path,
            feed_href=feed_href,
            refresh_seconds=self.refresh_seconds,
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"Invalid integer for {name}: {raw!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")
