"""CLI interface for bookmark-harvester.

Commands:
    setup   - Configure x.com session cookies and optional cloud sync
    scrape  - Scrape the bookmarks timeline, expand threads and articles
    expand  - Expand threads and articles of already stored bookmarks
    sync    - Push stored bookmarks to the cloud backend
    export  - Write stored bookmarks to CSV
    status  - Show current store status
"""

import sys
from pathlib import Path

import click

from .config import (
    CONFIG_FILE,
    AppConfig,
    AuthConfig,
    SyncConfig,
    config_exists,
    load_config,
    save_config,
)
from .logging_config import setup_logging


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", type=click.Path(), default=None, help="Config file path")
@click.pass_context
def main(ctx, verbose, config):
    """Bookmark Harvester — Scrape x.com bookmarks into threads and articles."""
    setup_logging(debug=verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else CONFIG_FILE
    ctx.obj["verbose"] = verbose


def _require_config(ctx) -> AppConfig:
    config_path = ctx.obj["config_path"]
    if not config_exists(config_path):
        click.echo(
            "Error: No config found. Run 'bookmark-harvester setup' first.",
            err=True,
        )
        sys.exit(1)
    try:
        return load_config(config_path)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _observer(ctx):
    from .diagnostics import NULL_OBSERVER, LoggingObserver

    return LoggingObserver() if ctx.obj.get("verbose") else NULL_OBSERVER


def _progress(label: str):
    def report(current: int, total: int) -> None:
        click.echo(f"  {label} {current}/{total}")

    return report


@main.command()
@click.pass_context
def setup(ctx):
    """Configure x.com session cookies and optional cloud sync."""
    config_path = ctx.obj["config_path"]

    click.echo("Bookmark Harvester — Setup")
    click.echo("=" * 40)
    click.echo()
    click.echo("You need your x.com session cookies.")
    click.echo("To get them:")
    click.echo("  1. Open x.com in your browser and log in")
    click.echo("  2. Open DevTools (F12) -> Application -> Cookies -> https://x.com")
    click.echo("  3. Copy the values of 'auth_token' and 'ct0'")
    click.echo()

    auth_token = click.prompt("auth_token", hide_input=True)
    ct0 = click.prompt("ct0", hide_input=True)

    click.echo()
    click.echo("(Optional) Cloud sync backend URL — press Enter to skip.")
    sync_url = click.prompt("sync url", default="", show_default=False)
    sync = SyncConfig()
    if sync_url:
        sync = SyncConfig(
            url=sync_url,
            api_key=click.prompt("sync api_key", hide_input=True),
            user_id=click.prompt("sync user_id"),
            access_token=click.prompt(
                "sync access_token", default="", show_default=False, hide_input=True
            )
            or None,
        )

    config = AppConfig(auth=AuthConfig(auth_token=auth_token, ct0=ct0), sync=sync)
    save_config(config, config_path)
    click.echo(f"\nConfig saved to {config_path}")
    click.echo("Run 'bookmark-harvester scrape' to collect your bookmarks.")


def _expand(config: AppConfig, bookmarks, session, observer, threads=True, articles=True):
    """Run thread then article expansion; return (bookmarks, failures)."""
    from .articles import ArticleFetcher
    from .client import XWebClient
    from .merge import expand_articles, expand_threads
    from .threads import ThreadReconstructor

    failures: list[tuple[str, str]] = []

    if threads:
        with XWebClient(
            config.auth.auth_token,
            config.auth.ct0,
            timeout=config.fetch.timeout,
            max_retries=config.fetch.retries,
            retry_delay=config.fetch.delay,
        ) as client:
            report = expand_threads(
                bookmarks,
                ThreadReconstructor(client, observer),
                on_progress=_progress("thread"),
                delay=config.fetch.delay,
                observer=observer,
            )
        bookmarks = report.bookmarks
        failures.extend(report.failures)

    if articles:
        fetcher = ArticleFetcher(session, settle_ms=int(config.fetch.settle * 1000))
        report = expand_articles(
            bookmarks,
            fetcher,
            on_progress=_progress("article"),
            delay=config.fetch.delay,
            observer=observer,
        )
        bookmarks = report.bookmarks
        failures.extend(report.failures)

    return bookmarks, failures


def _report_failures(failures: list[tuple[str, str]]) -> None:
    if not failures:
        return
    click.echo(f"{len(failures)} items could not be expanded:")
    for post_id, error in failures:
        click.echo(f"  {post_id}: {error}")


@main.command()
@click.option("--no-expand", is_flag=True, help="Skip thread expansion")
@click.option("--no-articles", is_flag=True, help="Skip fetching article bodies")
@click.option(
    "--watch",
    type=float,
    default=None,
    help="Keep the page open for SECONDS and re-scrape as the timeline changes",
)
@click.option("--full", is_flag=True, help="Discard stored bookmarks first")
@click.pass_context
def scrape(ctx, no_expand, no_articles, watch, full):
    """Scrape the bookmarks timeline into the local store."""
    config = _require_config(ctx)
    observer = _observer(ctx)

    # Lazy imports so --help stays fast
    from playwright.sync_api import Error as PlaywrightError

    from .browser import BrowserSession
    from .errors import HarvesterError
    from .merge import merge_scraped
    from .models import utc_now_iso
    from .scraper import TimelineScraper, TimelineWatcher
    from .state import BookmarkStore

    store = BookmarkStore(config.state_dir)
    if full:
        click.echo("Full mode — discarding stored bookmarks.")
        store.clear()

    bookmarks = store.get_all()
    known = len(bookmarks)
    captured_at = utc_now_iso()

    def collect(posts):
        merge_scraped(bookmarks, posts, bookmarked_at=captured_at)
        click.echo(f"Scraped {len(posts)} posts ({len(bookmarks)} bookmarks total).")

    click.echo("Opening bookmarks timeline...")
    try:
        with BrowserSession(
            config.auth.auth_token, config.auth.ct0, headless=config.fetch.headless
        ) as session:
            context = session.new_context()
            try:
                scraper = TimelineScraper(context.new_page(), observer)
                scraper.open()
                if watch:
                    TimelineWatcher(scraper, collect).watch(watch)
                else:
                    collect(scraper.scrape())
            finally:
                context.close()

            failures: list[tuple[str, str]] = []
            if not (no_expand and no_articles):
                bookmarks, failures = _expand(
                    config,
                    bookmarks,
                    session,
                    observer,
                    threads=not no_expand,
                    articles=not no_articles,
                )
    except (HarvesterError, PlaywrightError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    store.upsert_many(bookmarks)
    store.mark_scraped()
    store.save()

    click.echo(f"{len(bookmarks) - known} new bookmarks, {store.count} stored.")
    _report_failures(failures)


@main.command()
@click.option("--no-articles", is_flag=True, help="Skip fetching article bodies")
@click.pass_context
def expand(ctx, no_articles):
    """Expand threads and articles of already stored bookmarks."""
    config = _require_config(ctx)
    observer = _observer(ctx)

    from playwright.sync_api import Error as PlaywrightError

    from .browser import BrowserSession
    from .errors import HarvesterError
    from .state import BookmarkStore

    store = BookmarkStore(config.state_dir)
    bookmarks = store.get_all()
    if not bookmarks:
        click.echo("No stored bookmarks. Run 'bookmark-harvester scrape' first.")
        return

    needs_browser = not no_articles and any(
        b.is_article and not b.article_content for b in bookmarks
    )
    try:
        if needs_browser:
            with BrowserSession(
                config.auth.auth_token, config.auth.ct0, headless=config.fetch.headless
            ) as session:
                bookmarks, failures = _expand(config, bookmarks, session, observer)
        else:
            bookmarks, failures = _expand(
                config, bookmarks, None, observer, articles=False
            )
    except (HarvesterError, PlaywrightError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    store.upsert_many(bookmarks)
    store.save()
    click.echo(f"{store.count} bookmarks stored.")
    _report_failures(failures)


@main.command()
@click.option("--all", "sync_all", is_flag=True, help="Sync every bookmark, not just pending")
@click.pass_context
def sync(ctx, sync_all):
    """Push stored bookmarks to the cloud backend."""
    config = _require_config(ctx)

    from .errors import SyncError
    from .models import SyncStatus
    from .state import BookmarkStore
    from .sync import SyncClient

    if not config.sync.configured:
        click.echo("Error: Cloud sync is not configured. Run setup again.", err=True)
        sys.exit(1)

    store = BookmarkStore(config.state_dir)
    bookmarks = store.get_all() if sync_all else store.get_pending()
    if not bookmarks:
        click.echo("Nothing to sync.")
        return

    try:
        with SyncClient(
            config.sync.url,
            config.sync.api_key,
            config.sync.user_id,
            access_token=config.sync.access_token,
        ) as client:
            result = client.sync(bookmarks)
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    failed = dict(result.errors)
    for bookmark in bookmarks:
        if bookmark.post_id in failed:
            store.update_sync_status(
                bookmark.local_id, SyncStatus.ERROR, failed[bookmark.post_id]
            )
        else:
            store.update_sync_status(bookmark.local_id, SyncStatus.SYNCED)
    store.save()

    click.echo(f"Synced {result.synced} bookmarks.")
    if failed:
        click.echo(f"{len(failed)} bookmarks failed to sync.", err=True)


@main.command()
@click.option("-o", "--output", type=click.Path(), default=None, help="Output CSV file path")
@click.pass_context
def export(ctx, output):
    """Export stored bookmarks to CSV.

    If -o is not specified, CSV is written to stdout.
    """
    config = _require_config(ctx)

    from .converter import bookmarks_to_csv
    from .state import BookmarkStore

    store = BookmarkStore(config.state_dir)
    bookmarks = store.get_all()
    if not bookmarks:
        click.echo("Error: No stored bookmarks.", err=True)
        sys.exit(1)

    if output:
        output_path = Path(output)
        with open(output_path, "w", encoding="utf-8", newline="") as f:
            bookmarks_to_csv(bookmarks, f)
        click.echo(f"CSV written to {output_path}", err=True)
    else:
        click.echo(bookmarks_to_csv(bookmarks), nl=False)


@main.command()
@click.pass_context
def status(ctx):
    """Show current store status."""
    config_path = ctx.obj["config_path"]
    has_config = config_exists(config_path)

    click.echo("Bookmark Harvester — Status")
    click.echo("=" * 40)
    click.echo(f"Config: {'Found' if has_config else 'Not configured'} ({config_path})")

    if not has_config:
        click.echo("\nRun 'bookmark-harvester setup' to get started.")
        return

    config = load_config(config_path)

    from .state import BookmarkStore

    store = BookmarkStore(config.state_dir)
    stats = store.stats()
    click.echo(f"Stored bookmarks: {stats['total']}")
    click.echo(
        f"Sync: {stats['synced']} synced, {stats['pending']} pending, "
        f"{stats['error']} failed"
    )
    for category, count in sorted(stats["by_category"].items()):
        click.echo(f"  {category}: {count}")
    click.echo(f"Last scrape: {store.last_scrape or 'never'}")
    click.echo(f"Cloud sync: {'configured' if config.sync.configured else 'off'}")
