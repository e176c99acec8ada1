"""Fetching and normalization of ransomware disclosure posts."""

import re
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

import requests
from dateutil import parser as date_parser

from .config import FetchConfig
from .logging_config import create_execution_logger
from .models import DisclosurePost, StepResult

# Code points outside the XML 1.0 Char production
XML_ILLEGAL_CHARS = re.compile(
    "[^\x09\x0a\x0d\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)
WHITESPACE = re.compile(r"\s")

# Fills date parts a partial timestamp leaves out
DATE_DEFAULT = datetime(1970, 1, 1)


class PostFetcher:
    """Downloads the raw disclosure post list from the remote endpoint."""

    def __init__(self, config: FetchConfig, execution_id: str | None = None):
        """Initialize PostFetcher with configuration.

        Args:
            config: Endpoint URL, timeout and user agent
            execution_id: Execution ID for logging context
        """
        self.config = config
        self.logger = create_execution_logger("fetcher", execution_id)
        self.session = requests.Session()
        self.session.headers.update(
            {"User-Agent": config.user_agent, "Accept": "application/json"}
        )

        self.logger.info(
            "PostFetcher initialized", source_url=config.url, timeout=config.timeout
        )

    def fetch_posts(self) -> StepResult[list[dict[str, Any]]]:
        """Fetch raw post records, degrading to an empty list on any failure.

        Returns:
            OK result with the decoded records, or DEGRADED with an empty list
        """
        try:
            records = self.download_posts()
        except (requests.RequestException, ValueError) as e:
            self.logger.error(
                f"Failed to fetch posts from {self.config.url}: {e}",
                source_url=self.config.url,
                error=str(e),
            )
            return StepResult.degraded([], reason="fetch_failed", error=e)

        self.logger.info(
            f"Fetched {len(records)} posts",
            source_url=self.config.url,
            records_count=len(records),
        )
        return StepResult.ok(records)

    def download_posts(self) -> list[dict[str, Any]]:
        """Download and decode the JSON post list.

        Raises:
            ValueError: If the URL is not HTTPS or the body is not a JSON array
            requests.RequestException: If the download fails or returns non-2xx
        """
        url = self.config.url
        parsed_url = urlparse(url)
        if parsed_url.scheme != "https":
            raise ValueError(f"Posts URL must use HTTPS protocol: {url}")

        response = self.session.get(url, timeout=self.config.timeout)
        response.raise_for_status()
        self.logger.debug(
            "Posts downloaded",
            source_url=url,
            status_code=response.status_code,
            content_length=len(response.content),
        )

        data = response.json()
        if not isinstance(data, list):
            raise ValueError(
                f"Expected a JSON array of posts, got {type(data).__name__}"
            )
        return data


def normalize_post(raw_item: dict[str, Any]) -> DisclosurePost:
    """Normalize a raw post record into a DisclosurePost.

    Characters XML 1.0 cannot carry are dropped, whitespace in the group
    name and post title becomes underscores, and the discovery time is
    parsed into a timezone-aware datetime (UTC when the source omits the
    offset).

    Raises:
        ValueError: If a field is missing, empty or not a string, or the
            discovery time cannot be parsed or converted to UTC
    """
    if not isinstance(raw_item, dict):
        raise ValueError(
            f"Post record must be an object, got {type(raw_item).__name__}"
        )

    fields = {}
    for name in ("group_name", "post_title", "discovered"):
        value = raw_item.get(name)
        if isinstance(value, str):
            value = XML_ILLEGAL_CHARS.sub("", value)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Post record has missing or empty '{name}'")
        fields[name] = value

    try:
        discovered = date_parser.parse(fields["discovered"], default=DATE_DEFAULT)
    except (ValueError, OverflowError) as e:
        raise ValueError(
            f"Unparseable discovery time {fields['discovered']!r}: {e}"
        ) from e
    if discovered.tzinfo is None:
        discovered = discovered.replace(tzinfo=UTC)
    try:
        discovered.astimezone(UTC)
    except OverflowError as e:
        raise ValueError(
            f"Discovery time {fields['discovered']!r} is out of range in UTC"
        ) from e

    return DisclosurePost(
        group_name=WHITESPACE.sub("_", fields["group_name"]),
        post_title=WHITESPACE.sub("_", fields["post_title"]),
        discovered=discovered,
    )


def transform_posts(
    raw_items: list[dict[str, Any]],
    limit: int = 20,
    execution_id: str | None = None,
) -> list[DisclosurePost]:
    """Normalize raw records and keep the last ``limit`` of them.

    Input is assumed to be in ascending discovery order, so the tail holds
    the most recent posts. Malformed records are skipped and logged.
    """
    logger = create_execution_logger("transform", execution_id)
    posts = []

    for index, raw_item in enumerate(raw_items):
        try:
            posts.append(normalize_post(raw_item))
        except ValueError as e:
            logger.warning(
                f"Skipping malformed post record #{index}: {e}",
                reason="malformed_record",
                error=str(e),
            )
            continue

    kept = posts[-limit:] if limit > 0 else []
    logger.info(
        f"Normalized {len(posts)} of {len(raw_items)} posts, keeping {len(kept)}",
        normalized_count=len(posts),
        kept_count=len(kept),
    )
    return kept


def canonical_timestamp(value: datetime) -> str:
    """ISO-8601 UTC rendering used for discovery times."""
    return value.astimezone(UTC).replace(microsecond=0).isoformat()
