"""
1.0 Main Orchestrator Module
Regenerates the sitemap of every configured site.

For each target:
1. Crawl the site from its seed URL and fingerprint every page
2. Move the pages to the deployed origin (optional deploy_url)
3. Import the previously published sitemap (missing on the first run)
4. Combine: unchanged pages keep their old lastmod
5. Write the new sitemap and append the month's change log
"""

import argparse
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from auto_sitemap.change_log import build_change_log, get_monthly_change_log_path, save_change_log
from auto_sitemap.config import CONFIG_FILE_PATH, load_config
from auto_sitemap.crawler import SiteCrawler
from auto_sitemap.exceptions import FetchError
from auto_sitemap.sitemap import Sitemap
from auto_sitemap.sitemap_fetcher import SitemapFetcher

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE = "auto_sitemap.log"


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = LOG_FILE) -> None:
    """1.1 Log to stderr and, when log_file is set, to a file."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


def get_target_config(target: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    2.0 Merge global settings with target-level overrides.

    Any global key (timeout, max_pages, user_agent...) may be repeated on a
    target to override it for that site only.
    """
    return {**config, **{k: v for k, v in target.items() if k in config}}


def resolve_output_path(target: Dict[str, Any], config: Dict[str, Any]) -> str:
    """2.1 Where the sitemap of a target is written."""
    if target.get("output_path"):
        return target["output_path"]
    return os.path.join(config.get("data_directory", "output"), target["domain"], "sitemap.xml")


def resolve_change_log_dir(target: Dict[str, Any], config: Dict[str, Any]) -> str:
    """2.2 Where the change logs of a target go; kept out of the published output."""
    return os.path.join(config.get("data_directory", "output"), target["domain"])


def load_old_sitemap(source: Optional[str], fetcher: Any) -> Sitemap:
    """
    2.3 Import the previously published sitemap.

    A sitemap that cannot be fetched is the normal first-run case and yields
    an empty sitemap. A malformed one is an error and propagates.
    """
    if not source:
        logger.info("No previous sitemap configured, starting from scratch")
        return Sitemap()
    try:
        return Sitemap.import_sitemap(source, fetcher=fetcher)
    except FetchError as e:
        logger.warning(f"Previous sitemap unavailable ({e}), starting from scratch")
        return Sitemap()


def process_target(
    target: Dict[str, Any],
    config: Dict[str, Any],
    crawler: Optional[Any] = None,
    fetcher: Optional[Any] = None,
) -> Tuple[str, Dict[str, Any]]:
    """
    3.0 Regenerate the sitemap of a single site (safe to run concurrently).

    Args:
        target: Target configuration dictionary
        config: Global configuration dictionary
        crawler: Crawl collaborator (default: SiteCrawler)
        fetcher: Fetch collaborator (default: SitemapFetcher)

    Returns:
        Tuple of (domain, result_dict) for aggregation
    """
    domain = target.get("domain")
    try:
        target_config = get_target_config(target, config)
        fetcher = fetcher or SitemapFetcher(config=target_config)
        crawler = crawler or SiteCrawler(fetcher=fetcher, config=target_config)
        output_path = resolve_output_path(target, config)
        run_ts = datetime.now(timezone.utc)

        logger.info(f"Processing domain: {domain}, seed: {target['seed_url']}")

        # 3.1 Crawl
        sitemap = Sitemap.generate_by_crawling(target["seed_url"], crawler=crawler)
        if target.get("deploy_url"):
            sitemap.update_domain(target["deploy_url"])

        # 3.2 Previous sitemap: configured location, else our last output
        old_source = target.get("sitemap_url")
        if not old_source and os.path.exists(output_path):
            old_source = output_path
        old_sitemap = load_old_sitemap(old_source, fetcher)

        # 3.3 Combine
        info = sitemap.combine_with_old_sitemap(old_sitemap)
        if target_config.get("sort_by_url", True):
            sitemap.sort_by_url()

        # 3.4 Write sitemap and change log
        output_dir = os.path.dirname(output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)
        with open(output_path, "wb") as f:
            sitemap.serialize(f)
        logger.info(f"Wrote {len(sitemap)} pages to {output_path}")

        changes_df = build_change_log(info, sitemap, old_sitemap, domain, detected_at=run_ts)
        change_log_dir = resolve_change_log_dir(target, target_config)
        save_change_log(changes_df, get_monthly_change_log_path(change_log_dir, domain, run_ts))

        return (domain, {"status": "success", "pages": len(sitemap), "output_path": output_path, **info.summary()})

    except Exception as e:
        # 3.5 Log error but don't crash the batch - return error result
        logger.error(f"FAILED processing domain {domain}: {type(e).__name__}: {e}")
        logger.exception("Full traceback:")
        return (domain, {"status": "error", "message": str(e)})


def run(config: Dict[str, Any], only_domain: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """
    4.0 Process every enabled target and return results per domain.
    """
    targets_to_process = []
    for target in config.get("targets", []):
        domain = target.get("domain")
        if only_domain and domain != only_domain:
            continue
        if target.get("enabled") is False:
            logger.info(f"Domain {domain}: disabled in config, skipping")
            continue
        targets_to_process.append(target)

    logger.info(f"Processing {len(targets_to_process)} domains")

    max_workers = int(config.get("max_concurrent_domains", 1) or 1)
    domain_results: Dict[str, Dict[str, Any]] = {}

    if not targets_to_process:
        logger.warning("No domains to process")
    elif len(targets_to_process) == 1 or max_workers == 1:
        for target in targets_to_process:
            domain, result = process_target(target, config)
            domain_results[domain] = result
    else:
        logger.info(f"Using {max_workers} concurrent workers")
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_domain = {
                executor.submit(process_target, target, config): target.get("domain")
                for target in targets_to_process
            }
            for future in as_completed(future_to_domain):
                domain, result = future.result()
                domain_results[domain] = result
                logger.info(f"Finished {domain}: {result.get('status')}")

    return domain_results


def log_summary(domain_results: Dict[str, Dict[str, Any]]) -> None:
    """4.1 Summary of domain results."""
    logger.info("=" * 60)
    logger.info("Domain Processing Summary:")
    for domain, result in domain_results.items():
        if result.get("status") == "success":
            logger.info(
                f"  [OK] {domain}: {result.get('pages', 0)} pages "
                f"({result.get('new', 0)} new, {result.get('updated', 0)} updated, "
                f"{result.get('unchanged', 0)} unchanged, {result.get('removed', 0)} removed)"
            )
        else:
            logger.error(f"  [FAIL] {domain}: {result.get('message', 'failed')}")
    logger.info("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """
    5.0 Command-line entry point.

    Returns:
        0 when every processed target succeeded, 1 otherwise
    """
    parser = argparse.ArgumentParser(description="Generate sitemaps whose lastmod follows content changes.")
    parser.add_argument("--config", default=CONFIG_FILE_PATH, help="Path to the JSON configuration file")
    parser.add_argument("--target", help="Only process the target with this domain")
    parser.add_argument("--log-file", default=LOG_FILE, help="Log file path ('' to disable)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file or None)

    logger.info("=" * 60)
    logger.info("Starting sitemap generation")
    logger.info(f"Run timestamp: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 60)

    config = load_config(args.config)
    if not config:
        logger.error("Failed to load configuration. Exiting.")
        return 1

    domain_results = run(config, only_domain=args.target)
    log_summary(domain_results)

    failed = [d for d, r in domain_results.items() if r.get("status") != "success"]
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
