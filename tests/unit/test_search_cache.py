"""Tests for the query cache."""

from research_digest.models.trace import Bundle, PageDigest, Result
from research_digest.web_search.search_cache import SearchCache


def make_bundle(query: str, pages=(1,)) -> Bundle:
    bundle = Bundle(query=query)
    for page in pages:
        bundle.attach_page(PageDigest(
            page=page,
            results=[Result(title=f"p{page}", url=f"https://example.com/{page}", score=0.8)],
        ))
    return bundle


class TestSearchCache:
    """Test cache lookups, ownership and statistics."""

    def test_miss_then_hit(self):
        cache = SearchCache()
        assert cache.get("rust") is None

        cache.set("rust", make_bundle("rust"))
        cached = cache.get("rust")

        assert cached is not None
        assert cached.query == "rust"
        assert cache.get_stats() == {"total_entries": 1, "hits": 1, "misses": 1}

    def test_keys_are_literal(self):
        cache = SearchCache()
        cache.set("Rust", make_bundle("Rust"))

        assert "Rust" in cache
        assert "rust" not in cache
        assert cache.get(" Rust") is None

    def test_get_page(self):
        cache = SearchCache()
        cache.set("rust", make_bundle("rust", pages=(1, 2)))

        assert cache.get_page("rust", 2).page == 2
        assert cache.get_page("rust", 3) is None
        assert cache.get_page("go", 1) is None

    def test_empty_page_is_cached(self):
        cache = SearchCache()
        bundle = Bundle(query="nothing")
        bundle.attach_page(PageDigest(page=1))

        cache.set("nothing", bundle)

        cached = cache.get_page("nothing", 1)
        assert cached is not None
        assert cached.results == []

    def test_cache_does_not_share_results(self):
        cache = SearchCache()
        bundle = make_bundle("rust")
        cache.set("rust", bundle)

        bundle.pages[0].results[0].title = "mutated after set"
        first = cache.get("rust")
        first.pages[0].results[0].title = "mutated after get"

        assert cache.get("rust").pages[0].results[0].title == "p1"

    def test_set_merges_pages(self):
        cache = SearchCache()
        cache.set("rust", make_bundle("rust", pages=(1,)))
        cache.set("rust", make_bundle("rust", pages=(2,)))

        assert [p.page for p in cache.get("rust").pages] == [1, 2]
        assert cache.size == 1

    def test_clear(self):
        cache = SearchCache()
        cache.set("rust", make_bundle("rust"))
        cache.clear()
        assert cache.size == 0
