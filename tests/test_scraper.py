"""Tests for the timeline scraper."""

from unittest.mock import MagicMock

from playwright.sync_api import Error as PlaywrightError

from bookmark_harvester.diagnostics import RecordingObserver
from bookmark_harvester.scraper import (
    SHOW_MORE_SELECTOR,
    SHOW_MORE_SPAN_SELECTOR,
    TimelineScraper,
    TimelineWatcher,
    expand_truncated_posts,
    scrape_document,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _page_with_controls(show_more=(), spans=(), html="<html></html>"):
    page = MagicMock()

    def query_selector_all(selector):
        return list(show_more if selector == SHOW_MORE_SELECTOR else spans)

    page.query_selector_all.side_effect = query_selector_all
    page.content.return_value = html
    return page


class FakeTimeline:
    """A page whose "Show more" controls disappear once clicked."""

    def __init__(self, count: int):
        self.live = [MagicMock(name=f"control{i}") for i in range(count)]
        self.clicked = []
        for control in self.live:
            control.click.side_effect = lambda c=control: self._click(c)
        self.page = MagicMock()
        self.page.query_selector_all.side_effect = self._query

    def _click(self, control):
        if control not in self.live:
            raise PlaywrightError("Element is not attached to the DOM")
        self.live.remove(control)
        self.clicked.append(control)

    def _query(self, selector):
        return list(self.live) if selector == SHOW_MORE_SELECTOR else []


class TestScrapeDocument:
    def test_scrapes_posts_in_order(self, timeline_html):
        posts = scrape_document(timeline_html)
        assert [p.post_id for p in posts] == [
            "1790000000000000001",
            "1790000000000000002",
            "1790000000000000003",
            "1790000000000000004",
            "1790000000000000005",
        ]

    def test_first_occurrence_wins(self, timeline_html):
        posts = scrape_document(timeline_html)
        first = next(p for p in posts if p.post_id == "1790000000000000001")
        assert first.content.startswith("1/5 A thread")

    def test_reports_skips_and_duplicates(self, timeline_html):
        observer = RecordingObserver()
        scrape_document(timeline_html, observer)
        assert observer.names().count("scrape.duplicate") == 1
        assert observer.names().count("scrape.skip_element") == 1

    def test_empty_document(self):
        assert scrape_document("<html><body></body></html>") == []


class TestExpandTruncatedPosts:
    def test_clicks_every_control(self):
        controls = [MagicMock(), MagicMock()]
        page = _page_with_controls(show_more=controls[:1], spans=controls[1:])

        assert expand_truncated_posts(page) == 2
        for control in controls:
            control.click.assert_called_once()
        # pacing after each click plus one final settle
        assert page.wait_for_timeout.call_count == 3

    def test_failed_click_is_skipped(self):
        broken = MagicMock()
        broken.click.side_effect = PlaywrightError("detached")
        working = MagicMock()
        page = _page_with_controls(show_more=[broken, working])

        assert expand_truncated_posts(page) == 1
        working.click.assert_called_once()

    def test_controls_removed_on_click_are_all_expanded(self):
        timeline = FakeTimeline(4)
        controls = list(timeline.live)

        assert expand_truncated_posts(timeline.page) == 4
        assert timeline.clicked == controls
        assert timeline.live == []

    def test_spans_use_exact_text_selector(self):
        page = _page_with_controls()
        expand_truncated_posts(page)
        selectors = [c.args[0] for c in page.query_selector_all.call_args_list]
        assert selectors == [SHOW_MORE_SELECTOR, SHOW_MORE_SPAN_SELECTOR]
        page.locator.assert_not_called()

    def test_no_controls_no_wait(self):
        page = _page_with_controls()
        assert expand_truncated_posts(page) == 0
        page.wait_for_timeout.assert_not_called()


class TestTimelineScraper:
    def test_scrape_uses_rendered_content(self, timeline_html):
        page = _page_with_controls(html=timeline_html)
        observer = RecordingObserver()

        posts = TimelineScraper(page, observer).scrape()

        assert len(posts) == 5
        assert observer.events[-1] == ("scrape.done", {"count": 5, "expanded": 0})

    def test_open_waits_for_posts(self):
        page = MagicMock()
        TimelineScraper(page).open("https://x.com/i/bookmarks", timeout_ms=5000)
        page.goto.assert_called_once_with(
            "https://x.com/i/bookmarks", wait_until="domcontentloaded", timeout=5000
        )
        page.wait_for_selector.assert_called_once()


class TestTimelineWatcher:
    def _watcher(self, clock, pages=None):
        scraper = MagicMock()
        scraper.scrape.side_effect = pages or (lambda: [])
        received = []
        watcher = TimelineWatcher(scraper, received.append, settle_ms=1000, clock=clock)
        return watcher, scraper, received

    def test_settles_after_quiet_period(self):
        clock = FakeClock()
        watcher, _, _ = self._watcher(clock)

        assert watcher.settled() is False
        watcher.notify_mutation()
        clock.now = 0.5
        assert watcher.settled() is False
        clock.now = 1.0
        assert watcher.settled() is True

    def test_new_mutation_pushes_back_settle(self):
        clock = FakeClock()
        watcher, _, _ = self._watcher(clock)

        watcher.notify_mutation()
        clock.now = 0.9
        watcher.notify_mutation()
        clock.now = 1.5
        assert watcher.settled() is False

    def test_watch_rescrapes_on_settled_mutations(self):
        clock = FakeClock()
        watcher, scraper, received = self._watcher(clock)

        def poll(ms):
            clock.now += ms / 1000
            # one burst of mutations right after the first poll
            if clock.now == 0.25:
                watcher.notify_mutation()

        scraper.page.wait_for_timeout.side_effect = poll

        assert watcher.watch(3.0) == 2
        assert len(received) == 2
        scraper.page.expose_function.assert_called_once()
        scraper.page.evaluate.assert_called_once()

    def test_watch_without_mutations_scrapes_once(self):
        clock = FakeClock()
        watcher, scraper, received = self._watcher(clock)
        scraper.page.wait_for_timeout.side_effect = lambda ms: setattr(
            clock, "now", clock.now + ms / 1000
        )

        assert watcher.watch(1.0) == 1
        assert received == [[]]

    def test_own_expansion_clicks_do_not_trigger_rescrape(self):
        clock = FakeClock()
        watcher, scraper, received = self._watcher(clock)

        def scrape():
            # expanding truncated posts mutates the timeline mid-scrape
            watcher.notify_mutation()
            return []

        scraper.scrape.side_effect = scrape
        scraper.page.wait_for_timeout.side_effect = lambda ms: setattr(
            clock, "now", clock.now + ms / 1000
        )

        assert watcher.watch(3.0) == 1
        assert watcher.settled() is False
