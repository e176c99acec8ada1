"""Entry point for RansomWatch RSS: fetch, merge and write the feed and page."""

import sys
from datetime import UTC, datetime
from typing import Any

from .config import Config
from .feed import FeedMerger
from .files import atomic_write_bytes
from .logging_config import create_execution_logger, setup_structured_logging
from .models import Outcome
from .page import render_html
from .posts import PostFetcher, transform_posts


def run(config: Config, execution_id: str | None = None) -> dict[str, Any]:
    """
    Run one fetch/merge/write pass.

    Fetch failures and a corrupt prior feed degrade instead of aborting.
    Everything else propagates to the caller.

    Args:
        config: Loaded configuration
        execution_id: Execution ID for logging context

    Returns:
        Metrics dictionary for the run
    """
    if not execution_id:
        execution_id = f"run_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)
    main_logger.log_execution_start()

    metrics = {
        "posts_fetched": 0,
        "posts_normalized": 0,
        "new_items": 0,
        "feed_items": 0,
        "prior_feed": None,
        "errors": [],
    }

    fetcher = PostFetcher(config.get_fetch_config(), execution_id=execution_id)
    fetched = fetcher.fetch_posts()
    raw_posts = fetched.unwrap()
    if fetched.outcome is Outcome.DEGRADED:
        metrics["errors"].append(f"Fetch degraded to empty batch: {fetched.error}")
    metrics["posts_fetched"] = len(raw_posts)

    posts = transform_posts(raw_posts, config.max_items, execution_id=execution_id)
    metrics["posts_normalized"] = len(posts)

    merger = FeedMerger(config.get_feed_config(), execution_id=execution_id)
    update = merger.update(posts)
    metrics["prior_feed"] = update.previous.reason or update.previous.outcome.value
    if update.previous.reason == "corrupt":
        metrics["errors"].append(f"Prior feed discarded: {update.previous.error}")
    metrics["new_items"] = len(update.new_items)
    metrics["feed_items"] = len(update.items)

    merger.write(update)

    page_config = config.get_page_config()
    html = render_html(posts, page_config, execution_id=execution_id)
    atomic_write_bytes(page_config.path, html.encode("utf-8"))
    main_logger.info(f"Wrote {len(posts)} rows to {page_config.path}")

    main_logger.log_metrics(metrics)
    main_logger.log_execution_end(success=True, metrics=metrics)
    return metrics


def main() -> int:
    """Console entry point. Returns the process exit status."""
    execution_id = f"run_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)

    try:
        config = Config()
        setup_structured_logging(config.log_level)
        run(config, execution_id=execution_id)
    except Exception as e:
        error_msg = f"Critical error in feed generation: {type(e).__name__}: {e}"
        main_logger.error(error_msg, error=str(e))
        print(f"ransomwatch-rss: {error_msg}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
