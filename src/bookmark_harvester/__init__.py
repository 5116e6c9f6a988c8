"""Scrape x.com bookmarks into deduplicated posts, threads and articles."""

__version__ = "0.1.0"
