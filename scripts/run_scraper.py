"""Run a scrape job from the command line.

Creates a job in the configured database, runs it to completion while
printing the job log, and optionally exports the products as CSV.

Usage:
    python scripts/run_scraper.py --platform cj --url https://cjdropshipping.com/list/wholesale-toys
    python scripts/run_scraper.py --platform shopify --url https://store.example/collections/all --max-products 20
    python scripts/run_scraper.py --config-id <stored-config-id> --platform aliexpress --export out.csv
"""

import argparse
import asyncio
import os
import sys

# Add backend to path so the script runs from a source checkout
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from scrapeforge.core.exceptions import ScrapeForgeError
from scrapeforge.core.logging import configure_logging
from scrapeforge.db.session import init_db
from scrapeforge.scrapers.factory import get_scraper_factory
from scrapeforge.services.export_service import export_filename, export_job_csv
from scrapeforge.services.job_manager import get_job_manager
from scrapeforge.services.notifications import JobEvent


def _print_event(event: str, payload: dict) -> None:
    if event == JobEvent.LOG:
        print(f"  [{payload['level'].upper():7}] {payload['message']}")
    elif event == JobEvent.UPDATE and "progress" in payload:
        print(f"  ... {payload['progress']}% ({payload.get('productsScraped', 0)} products)")


def build_config(args: argparse.Namespace) -> dict:
    """Platform default configuration with the command-line overrides applied."""
    config = get_scraper_factory().create_default_config(args.platform).to_storage()
    config["urlPatterns"] = args.url or []
    if args.max_products is not None:
        config["maxProducts"] = args.max_products
    if args.rate_limit is not None:
        config["rateLimit"] = args.rate_limit
    if args.captcha:
        config["captchaHandling"] = args.captcha
    if args.no_robots:
        config["robotsCompliance"] = False
    if args.no_js:
        config["javascriptRender"] = False
    return config


async def run_job(args: argparse.Namespace) -> int:
    await init_db()
    manager = get_job_manager()
    unsubscribe = manager.bus.subscribe_all(_print_event)

    try:
        if args.config_id:
            job_id = await manager.create_job(args.platform, config_id=args.config_id)
        else:
            job_id = await manager.create_job(args.platform, config=build_config(args))

        job = await manager.repository.get_job(job_id)
        display_name = manager.factory.get_platform_display_name(args.platform)

        print(f"\n{'='*70}")
        print(f"  Running {display_name} scrape")
        print(f"  Job: {job_id}")
        print(f"{'='*70}\n")

        result = await manager.start_job(job_id, args.platform, job.config)

        print(f"\n{'='*70}")
        print("  Summary")
        print(f"{'='*70}")
        print(f"  Success: {result.success}")
        print(f"  Products: {len(result.products)}")
        print(f"  Pages scraped: {result.pages_scraped}")
        print(f"  CAPTCHA events: {result.captcha_events}")
        if result.errors:
            print("  Errors:")
            for error in result.errors:
                print(f"    - {error}")
        print(f"{'='*70}\n")

        if args.export is not None:
            destination = args.export or export_filename(job_id)
            await export_job_csv(manager.repository, job_id, destination)
            print(f"Exported products to {destination}\n")

        return 0 if result.success else 1

    except ScrapeForgeError as e:
        print(f"\nError: {e}\n")
        return 2

    finally:
        unsubscribe()


def main():
    """Parse arguments and run the job."""
    parser = argparse.ArgumentParser(
        description="Run a ScrapeForge scrape job",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--platform",
        required=True,
        help="Platform id or alias (cj, aliexpress, alibaba, shopify, generic)",
    )
    parser.add_argument(
        "--url",
        action="append",
        help="Target URL or path, repeatable",
    )
    parser.add_argument("--config-id", help="Use a stored configuration instead of --url")
    parser.add_argument("--max-products", type=int, help="Stop after this many products")
    parser.add_argument("--rate-limit", type=float, help="Requests per second")
    parser.add_argument("--captcha", choices=["pause", "solve", "skip"], help="CAPTCHA policy")
    parser.add_argument("--no-robots", action="store_true", help="Ignore robots.txt")
    parser.add_argument("--no-js", action="store_true", help="Disable JavaScript rendering")
    parser.add_argument(
        "--export",
        nargs="?",
        const="",
        default=None,
        help="Write the products as CSV (default name: scrapeforge-export-<job>-<time>.csv)",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    args = parser.parse_args()
    if not args.config_id and not args.url:
        parser.error("either --url or --config-id is required")

    configure_logging(level=args.log_level)
    sys.exit(asyncio.run(run_job(args)))


if __name__ == "__main__":
    main()
