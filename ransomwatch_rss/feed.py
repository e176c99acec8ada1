"""Feed merging and RSS 2.0 serialization for RansomWatch RSS."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import format_datetime

from dateutil import parser as date_parser

from .config import FeedConfig
from .dedup import Deduplicator, feed_item_key
from .files import atomic_write_bytes
from .logging_config import create_execution_logger
from .models import DisclosurePost, FeedItem, StepResult
from .posts import DATE_DEFAULT, canonical_timestamp

ATOM_NS = "http://www.w3.org/2005/Atom"
ET.register_namespace("atom", ATOM_NS)

# Sort position of items whose pubDate cannot be parsed
OLDEST = datetime.min.replace(tzinfo=UTC)


class CorruptFeedError(ValueError):
    """The prior feed file is not a well-formed RSS document."""


@dataclass
class FeedUpdate:
    """Result of merging a batch of posts into the prior feed."""

    items: list[FeedItem]
    new_items: list[FeedItem]
    previous: StepResult[list[FeedItem]]
    rss: bytes


def format_pub_date(value: datetime) -> str:
    """Render a datetime as an RFC-1123 GMT date."""
    return format_datetime(value.astimezone(UTC), usegmt=True)


def parse_pub_date(value: str) -> datetime | None:
    """Parse a pubDate string, returning None when it is not a date."""
    try:
        parsed = date_parser.parse(value, default=DATE_DEFAULT)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def pub_date_sort_key(item: FeedItem) -> datetime:
    return parse_pub_date(item.pub_date) or OLDEST


def build_feed_item(post: DisclosurePost) -> FeedItem:
    """Build the feed item announcing a freshly fetched post."""
    return FeedItem(
        title=feed_item_key(post.group_name, post.post_title),
        pub_date=format_pub_date(post.discovered),
        description=(
            f"Group: {post.group_name}, Title: {post.post_title}, "
            f"Discovered: {canonical_timestamp(post.discovered)}"
        ),
    )


def render_rss(items: list[FeedItem], config: FeedConfig) -> bytes:
    """Serialize feed items into an RSS 2.0 document."""
    rss = ET.Element("rss", {"version": "2.0"})
    channel = ET.SubElement(rss, "channel")
    ET.SubElement(channel, "title").text = config.title
    ET.SubElement(channel, "description").text = config.description
    ET.SubElement(channel, "link").text = config.link
    ET.SubElement(
        channel,
        f"{{{ATOM_NS}}}link",
        {"href": config.self_link, "rel": "self", "type": "application/rss+xml"},
    )

    for item in items:
        element = ET.SubElement(channel, "item")
        ET.SubElement(element, "title").text = item.title
        ET.SubElement(element, "pubDate").text = item.pub_date
        ET.SubElement(element, "description").text = item.description

    ET.indent(rss, space="  ")
    return ET.tostring(rss, encoding="utf-8", xml_declaration=True) + b"\n"


class FeedMerger:
    """Reconciles fetched posts with the feed written by the previous run."""

    def __init__(self, config: FeedConfig, execution_id: str | None = None):
        """Initialize the merger.

        Args:
            config: Feed location, size bound and channel metadata
            execution_id: Execution ID for logging context
        """
        self.config = config
        self.execution_id = execution_id
        self.logger = create_execution_logger("feed_merger", execution_id)

    def load_existing(self) -> StepResult[list[FeedItem]]:
        """Read the prior feed file.

        A missing or corrupt file degrades to an empty item list (corrupt is
        fatal in strict mode). Any other read error is fatal.
        """
        path = self.config.path
        try:
            with open(path, "rb") as f:
                content = f.read()
        except FileNotFoundError:
            self.logger.info(
                "No prior feed found, starting a fresh feed", feed_path=path
            )
            return StepResult.degraded([], reason="missing")
        except OSError as e:
            self.logger.error(
                f"Failed to read prior feed {path}: {e}",
                feed_path=path,
                error=str(e),
            )
            return StepResult.fatal(e, reason="read_failed")

        try:
            items = self.parse_items(content)
        except CorruptFeedError as e:
            if self.config.strict:
                self.logger.error(
                    f"Prior feed {path} is corrupt: {e}",
                    feed_path=path,
                    error=str(e),
                )
                return StepResult.fatal(e, reason="corrupt")
            self.logger.warning(
                f"Prior feed {path} is corrupt, discarding its history: {e}",
                feed_path=path,
                reason="corrupt",
                error=str(e),
            )
            return StepResult.degraded([], reason="corrupt", error=e)

        self.logger.info(
            f"Loaded {len(items)} items from prior feed",
            feed_path=path,
            items_count=len(items),
        )
        return StepResult.ok(items)

    def parse_items(self, content: bytes) -> list[FeedItem]:
        """Extract title, pubDate and description of each <item> verbatim.

        Raises:
            CorruptFeedError: If the content is not an <rss><channel> document
        """
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise CorruptFeedError(f"invalid XML: {e}") from e

        if root.tag != "rss":
            raise CorruptFeedError(f"unexpected root element <{root.tag}>")
        channel = root.find("channel")
        if channel is None:
            raise CorruptFeedError("missing <channel> element")

        items = []
        for element in channel.findall("item"):
            title = element.findtext("title") or ""
            pub_date = element.findtext("pubDate") or ""
            description = element.findtext("description") or ""
            if not (title.strip() and pub_date.strip() and description.strip()):
                self.logger.warning(
                    "Dropping incomplete item from prior feed",
                    item_title=title,
                    feed_path=self.config.path,
                )
                continue
            items.append(
                FeedItem(title=title, pub_date=pub_date, description=description)
            )
        return items

    def merge(
        self, posts: list[DisclosurePost], existing: list[FeedItem]
    ) -> tuple[list[FeedItem], list[FeedItem]]:
        """Merge new posts with existing items.

        Returns:
            The merged items (newest first, bounded) and the new items that
            were not already present
        """
        deduplicator = Deduplicator(
            (item.title for item in existing), execution_id=self.execution_id
        )

        new_items = []
        for post in posts:
            key = deduplicator.generate_item_key(post)
            if deduplicator.is_duplicate(key):
                self.logger.log_item_processing(key, "skipped_duplicate")
                continue
            deduplicator.store_item(key)
            new_items.append(build_feed_item(post))

        prior_items = []
        prior_titles = set()
        for item in existing:
            if item.title in prior_titles:
                continue
            prior_titles.add(item.title)
            prior_items.append(item)

        # sorted() is stable with reverse=True, so ties keep new-before-prior order
        combined = sorted(
            new_items + prior_items, key=pub_date_sort_key, reverse=True
        )
        return combined[: self.config.max_items], new_items

    def update(self, posts: list[DisclosurePost]) -> FeedUpdate:
        """Load the prior feed, merge ``posts`` into it and serialize the result.

        Raises:
            OSError: If the prior feed exists but cannot be read
            CorruptFeedError: If the prior feed is corrupt in strict mode
        """
        previous = self.load_existing()
        existing = previous.unwrap()

        items, new_items = self.merge(posts, existing)
        self.logger.info(
            f"Merged feed: {len(new_items)} new, {len(items)} total",
            feed_path=self.config.path,
            new_items_count=len(new_items),
            items_count=len(items),
            previous_outcome=previous.outcome.value,
        )
        return FeedUpdate(
            items=items,
            new_items=new_items,
            previous=previous,
            rss=render_rss(items, self.config),
        )

    def write(self, update: FeedUpdate) -> None:
        """Replace the feed file with the serialized update."""
        atomic_write_bytes(self.config.path, update.rss)
        self.logger.info(
            f"Wrote {len(update.items)} items to {self.config.path}",
            feed_path=self.config.path,
            items_count=len(update.items),
        )
