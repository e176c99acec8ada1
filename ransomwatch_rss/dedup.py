"""Deduplication module for RansomWatch RSS."""

from .logging_config import create_execution_logger
from .models import DisclosurePost


def feed_item_key(group_name: str, post_title: str) -> str:
    """Compose the feed item title, which doubles as the deduplication key.

    Keys compare by exact string equality; any hardening of the policy
    (case folding, whitespace collapsing) belongs here.
    """
    return f"{group_name}: {post_title}"


class Deduplicator:
    """Tracks feed item titles already present in the feed for one run."""

    def __init__(self, known_titles=(), execution_id: str | None = None):
        """Initialize the Deduplicator with the titles of the prior feed.

        Args:
            known_titles: Titles of items already published
            execution_id: Execution ID for logging context
        """
        self.logger = create_execution_logger("deduplicator", execution_id)
        self.seen: set[str] = set(known_titles)

        self.logger.debug(
            "Deduplicator initialized", known_titles_count=len(self.seen)
        )

    def generate_item_key(self, post: DisclosurePost) -> str:
        """Generate the deduplication key for a post."""
        return feed_item_key(post.group_name, post.post_title)

    def is_duplicate(self, key: str) -> bool:
        """Check whether a key was already published or stored this run."""
        return key in self.seen

    def store_item(self, key: str) -> None:
        """Remember a key so later occurrences count as duplicates."""
        self.seen.add(key)
