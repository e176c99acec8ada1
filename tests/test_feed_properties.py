"""Property-based tests for the feed merger."""

import os
import tempfile
import xml.etree.ElementTree as ET
from datetime import UTC, datetime

from hypothesis import given, settings
from hypothesis import strategies as st

from ransomwatch_rss.config import FeedConfig
from ransomwatch_rss.dedup import feed_item_key
from ransomwatch_rss.feed import (
    FeedMerger,
    build_feed_item,
    format_pub_date,
    pub_date_sort_key,
    render_rss,
)
from ransomwatch_rss.models import DisclosurePost, FeedItem, Outcome
from ransomwatch_rss.posts import transform_posts

# Small alphabets so batches and prior feeds collide often
names = st.text(alphabet="abc_", min_size=1, max_size=3)

posts = st.builds(
    DisclosurePost,
    group_name=names,
    post_title=names,
    discovered=st.datetimes(
        min_value=datetime(2020, 1, 1),
        max_value=datetime(2030, 1, 1),
        timezones=st.just(UTC),
    ).map(lambda d: d.replace(microsecond=0)),
)

xml_text = st.text(
    alphabet=st.characters(
        whitelist_categories=("L", "N", "P", "S"), max_codepoint=0x2FFF
    ),
    min_size=1,
    max_size=30,
)

prior_items = st.one_of(
    posts.map(build_feed_item),
    st.builds(
        FeedItem,
        title=xml_text,
        pub_date=st.one_of(
            st.datetimes(
                min_value=datetime(1990, 1, 1),
                max_value=datetime(2100, 1, 1),
                timezones=st.just(UTC),
            ).map(format_pub_date),
            st.sampled_from(["???", "soon", "n/a"]),
        ),
        description=xml_text,
    ),
)

merge_inputs = st.tuples(
    st.lists(posts, max_size=30),
    st.lists(prior_items, max_size=30),
    st.integers(min_value=1, max_value=25),
)

# Unrestricted text, control characters and line breaks included
raw_records = st.lists(
    st.fixed_dictionaries(
        {
            "group_name": st.text(max_size=10),
            "post_title": st.text(max_size=20),
            "discovered": st.datetimes(
                min_value=datetime(2000, 1, 1), max_value=datetime(2030, 1, 1)
            ).map(datetime.isoformat),
        }
    ),
    max_size=25,
)


def make_merger(max_items: int) -> FeedMerger:
    return FeedMerger(FeedConfig(path="unused-feed.xml", max_items=max_items))


class TestFeedMergerProperties:
    """Property-based tests for FeedMerger.merge."""

    @given(merge_inputs)
    def test_titles_are_unique(self, data):
        batch, existing, max_items = data

        items, _ = make_merger(max_items).merge(batch, existing)

        titles = [item.title for item in items]
        assert len(titles) == len(set(titles))

    @given(merge_inputs)
    def test_size_is_bounded(self, data):
        batch, existing, max_items = data

        items, _ = make_merger(max_items).merge(batch, existing)

        assert len(items) <= max_items
        unique = {feed_item_key(p.group_name, p.post_title) for p in batch}
        unique |= {item.title for item in existing}
        assert len(items) == min(max_items, len(unique))

    @given(merge_inputs)
    def test_items_are_newest_first(self, data):
        batch, existing, max_items = data

        items, _ = make_merger(max_items).merge(batch, existing)

        keys = [pub_date_sort_key(item) for item in items]
        assert all(a >= b for a, b in zip(keys, keys[1:]))

    @given(merge_inputs)
    def test_prior_items_are_never_rewritten(self, data):
        batch, existing, max_items = data

        items, new_items = make_merger(max_items).merge(batch, existing)

        prior_titles = {item.title for item in existing}
        for item in items:
            if item.title in prior_titles:
                assert item == next(e for e in existing if e.title == item.title)
        assert not prior_titles & {item.title for item in new_items}

    @given(st.lists(posts, max_size=30), st.integers(min_value=1, max_value=25))
    def test_empty_batch_is_a_fixed_point(self, batch, max_items):
        """Merging nothing into a merged feed reproduces the same document."""
        merger = make_merger(max_items)
        items, _ = merger.merge(batch, [])
        rss = render_rss(items, merger.config)

        reloaded = merger.parse_items(rss)
        again, new_items = merger.merge([], reloaded)

        assert new_items == []
        assert render_rss(again, merger.config) == rss


class TestFeedFileProperties:
    """Property-based tests for feeds written to disk and read back."""

    @settings(max_examples=50, deadline=None)
    @given(raw_records)
    def test_written_feed_reloads_without_loss(self, raw):
        """Arbitrary post text survives write and reload as the same items."""
        with tempfile.TemporaryDirectory() as workdir:
            config = FeedConfig(path=os.path.join(workdir, "feed.xml"))
            posts = transform_posts(raw)
            merger = FeedMerger(config)
            first = merger.update(posts)
            merger.write(first)

            ET.parse(config.path)

            empty = FeedMerger(config).update([])
            assert empty.previous.outcome is Outcome.OK
            assert empty.rss == first.rss

            refetched = FeedMerger(config).update(posts)
            assert refetched.new_items == []
            assert refetched.rss == first.rss

            titles = [item.title for item in refetched.items]
            assert len(titles) == len(set(titles))
