"""Property-based tests for post normalization."""

from datetime import UTC, datetime

from hypothesis import given
from hypothesis import strategies as st

from ransomwatch_rss.posts import normalize_post, transform_posts

names = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N"), whitelist_characters=" -."),
    min_size=1,
    max_size=40,
).filter(lambda x: x.strip())

discovered_times = st.datetimes(
    min_value=datetime(2015, 1, 1), max_value=datetime(2035, 12, 31)
)

raw_posts = st.builds(
    lambda group, title, discovered: {
        "group_name": group,
        "post_title": title,
        "discovered": discovered.isoformat(),
    },
    names,
    names,
    discovered_times,
)


class TestNormalizationProperties:
    """Property-based tests for normalize_post and transform_posts."""

    @given(raw_posts)
    def test_no_spaces_survive_normalization(self, raw):
        """Normalized names contain no spaces and keep every other character."""
        post = normalize_post(raw)

        assert " " not in post.group_name
        assert " " not in post.post_title
        assert post.group_name == raw["group_name"].replace(" ", "_")
        assert post.post_title == raw["post_title"].replace(" ", "_")

    @given(raw_posts)
    def test_naive_discovery_time_is_read_as_utc(self, raw):
        post = normalize_post(raw)

        expected = datetime.fromisoformat(raw["discovered"]).replace(tzinfo=UTC)
        assert post.discovered == expected

    @given(st.lists(raw_posts, max_size=60), st.integers(min_value=1, max_value=30))
    def test_transform_keeps_the_tail(self, raw, limit):
        """The batch is bounded and is the tail of the normalized input."""
        posts = transform_posts(raw, limit=limit)

        assert len(posts) == min(limit, len(raw))
        expected = [normalize_post(r) for r in raw][-limit:]
        assert posts == expected
