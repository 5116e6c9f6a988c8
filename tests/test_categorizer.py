"""Tests for category assignment."""

import itertools

import pytest

from bookmark_harvester.categorizer import (
    TRANSITIONS,
    Discovery,
    categorize,
    discoveries,
    transition,
)
from bookmark_harvester.models import Category, ExtractedPost

PRECEDENCE = [Category.QUICK_TAKE, Category.MEDIA, Category.THREAD, Category.ARTICLE]


def _post(**kwargs) -> ExtractedPost:
    return ExtractedPost(post_id="1790000000000000001", author_handle="a", author_name="A", **kwargs)


class TestCategorize:
    @pytest.mark.parametrize(
        "kwargs, expected",
        [
            ({}, Category.QUICK_TAKE),
            ({"media_urls": ["https://pbs.twimg.com/media/x.jpg"]}, Category.MEDIA),
            ({"is_reply": True}, Category.THREAD),
            ({"is_article": True}, Category.ARTICLE),
            (
                {"is_reply": True, "media_urls": ["https://pbs.twimg.com/media/x.jpg"]},
                Category.THREAD,
            ),
            (
                {
                    "is_article": True,
                    "is_reply": True,
                    "media_urls": ["https://pbs.twimg.com/media/x.jpg"],
                },
                Category.ARTICLE,
            ),
        ],
    )
    def test_precedence(self, kwargs, expected):
        assert categorize(_post(**kwargs)) is expected

    def test_video_without_media_urls_is_quick_take(self):
        assert categorize(_post(has_video=True)) is Category.QUICK_TAKE

    def test_discoveries_order(self):
        post = _post(is_article=True, is_reply=True, media_urls=["m"])
        assert discoveries(post) == [
            Discovery.ARTICLE_DETECTED,
            Discovery.REPLY_DETECTED,
            Discovery.MEDIA_DETECTED,
        ]


class TestTransitions:
    def test_table_is_total(self):
        for category, event in itertools.product(Category, Discovery):
            assert (category, event) in TRANSITIONS

    @pytest.mark.parametrize(
        "event", [Discovery.ARTICLE_DETECTED, Discovery.REPLY_DETECTED, Discovery.MEDIA_DETECTED]
    )
    def test_detection_never_downgrades(self, event):
        for category in Category:
            after = transition(category, event)
            assert PRECEDENCE.index(after) >= PRECEDENCE.index(category)

    def test_detection_order_does_not_matter(self):
        events = [Discovery.MEDIA_DETECTED, Discovery.ARTICLE_DETECTED, Discovery.REPLY_DETECTED]
        results = set()
        for order in itertools.permutations(events):
            category = Category.QUICK_TAKE
            for event in order:
                category = transition(category, event)
            results.add(category)
        assert results == {Category.ARTICLE}

    def test_thread_expansion_always_lands_on_thread(self):
        for category in Category:
            assert transition(category, Discovery.THREAD_EXPANDED) is Category.THREAD
