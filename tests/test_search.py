"""
Tests for name filtering and the debounced search trigger.
"""

import asyncio
from types import SimpleNamespace

from catalog.sync.search import DebouncedSearch, filter_by_name


def item(name):
    return SimpleNamespace(name=name)


class TestFilterByName:
    def test_case_insensitive_substring(self):
        items = [item("Green Tea"), item("Coffee"), item("ICED tea")]

        result = filter_by_name(items, "TEA")

        assert [i.name for i in result] == ["Green Tea", "ICED tea"]

    def test_arabic_substring(self):
        items = [item("شاي أخضر"), item("قهوة"), item("شاي أحمر")]

        assert len(filter_by_name(items, "شاي")) == 2

    def test_empty_or_blank_query_returns_all(self):
        items = [item("a"), item(None), item("b")]

        assert filter_by_name(items, "") == items
        assert filter_by_name(items, "   ") == items
        assert filter_by_name(items, None) == items

    def test_query_is_trimmed(self):
        assert len(filter_by_name([item("قهوة تركية")], "  تركية ")) == 1

    def test_items_without_name_never_match(self):
        items = [item(None), item(""), item("bread")]

        assert [i.name for i in filter_by_name(items, "b")] == ["bread"]

    def test_returns_a_new_list(self):
        items = [item("a")]
        assert filter_by_name(items, "") is not items


class TestDebouncedSearch:
    def test_only_last_query_fires(self):
        seen = []

        async def scenario():
            search = DebouncedSearch(seen.append, delay=0.02)
            search.update("ش")
            await asyncio.sleep(0.005)
            search.update("شا")
            await asyncio.sleep(0.005)
            search.update("شاي")
            await search.wait()

        asyncio.run(scenario())

        assert seen == ["شاي"]

    def test_separate_bursts_fire_separately(self):
        seen = []

        async def scenario():
            search = DebouncedSearch(seen.append, delay=0.01)
            search.update("a")
            await search.wait()
            search.update("b")
            await search.wait()

        asyncio.run(scenario())

        assert seen == ["a", "b"]

    def test_cancel_drops_pending_query(self):
        seen = []

        async def scenario():
            search = DebouncedSearch(seen.append, delay=0.01)
            search.update("a")
            search.cancel()
            await asyncio.sleep(0.03)

        asyncio.run(scenario())

        assert seen == []

    def test_flush_fires_immediately(self):
        seen = []

        async def scenario():
            search = DebouncedSearch(seen.append, delay=10)
            search.update("now")
            search.flush()
            assert seen == ["now"]
            await search.wait()

        asyncio.run(scenario())

    def test_async_callback_is_awaited(self):
        seen = []

        async def on_query(query):
            await asyncio.sleep(0)
            seen.append(query)

        async def scenario():
            search = DebouncedSearch(on_query, delay=0.01)
            search.update("x")
            await search.wait()

        asyncio.run(scenario())

        assert seen == ["x"]

    def test_callback_error_is_contained(self):
        def broken(query):
            raise RuntimeError("boom")

        async def scenario():
            search = DebouncedSearch(broken, delay=0.01)
            search.update("x")
            await search.wait()
            return search.pending

        assert asyncio.run(scenario()) is None
