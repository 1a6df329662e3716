"""
1.0 Change Log Module
Records what each sitemap update changed, as monthly CSV files.

Layout:
    <directory>/
        <domain>_changes_YYYY-MM.csv   (one row per discovered/modified/removed page)
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional

import pandas as pd

from auto_sitemap.reconciler import UpdateInfo
from auto_sitemap.sitemap import Sitemap
from auto_sitemap.sitemap_writer import format_w3c_datetime

logger = logging.getLogger(__name__)

# 1.1 Column name constants for consistency
COL_DETECTED_AT = "detected_at"
COL_DOMAIN = "domain"
COL_LOC = "loc"
COL_CHANGE_TYPE = "change_type"
COL_LASTMOD = "lastmod"
COL_LASTMOD_PREV = "lastmod_prev"

CHANGE_LOG_COLUMNS = [
    COL_DETECTED_AT, COL_DOMAIN, COL_LOC, COL_CHANGE_TYPE, COL_LASTMOD, COL_LASTMOD_PREV,
]

CHANGE_DISCOVERED = "discovered"
CHANGE_MODIFIED = "modified"
CHANGE_PRESENT = "present"
CHANGE_REMOVED = "removed"


def _lastmod(sitemap: Sitemap, url: str) -> Optional[str]:
    page = sitemap.get(url)
    if page is None or page.lastmod is None:
        return None
    return format_w3c_datetime(page.lastmod)


def build_change_log(
    info: UpdateInfo,
    new_sitemap: Sitemap,
    old_sitemap: Sitemap,
    domain: str,
    detected_at: Optional[datetime] = None,
    include_unchanged: bool = False,
) -> pd.DataFrame:
    """
    2.0 Flatten an UpdateInfo into change log rows.

    Args:
        info: Result of combining new_sitemap with old_sitemap
        new_sitemap: The combined sitemap
        old_sitemap: The previously published sitemap
        domain: Domain label written on every row
        detected_at: Run timestamp (default: now, UTC)
        include_unchanged: Also emit 'present' rows for unchanged pages

    Returns:
        DataFrame with CHANGE_LOG_COLUMNS, discovered/modified/present rows
        first (in that order), then removed rows
    """
    detected_at = detected_at or datetime.now(timezone.utc)
    detected_str = format_w3c_datetime(detected_at)

    groups = [
        (CHANGE_DISCOVERED, info.new_pages),
        (CHANGE_MODIFIED, info.updated_pages),
    ]
    if include_unchanged:
        groups.append((CHANGE_PRESENT, info.unchanged_pages))
    groups.append((CHANGE_REMOVED, info.removed_pages))

    rows = []
    for change_type, urls in groups:
        for url in urls:
            rows.append({
                COL_DETECTED_AT: detected_str,
                COL_DOMAIN: domain,
                COL_LOC: url,
                COL_CHANGE_TYPE: change_type,
                COL_LASTMOD: _lastmod(new_sitemap, url),
                COL_LASTMOD_PREV: _lastmod(old_sitemap, url),
            })

    return pd.DataFrame(rows, columns=CHANGE_LOG_COLUMNS)


def get_monthly_change_log_path(directory: str, domain: str, run_ts: datetime) -> str:
    """3.0 Path of the change log file for the month of run_ts."""
    month_str = run_ts.strftime("%Y-%m")
    return os.path.join(directory, f"{domain}_changes_{month_str}.csv")


def save_change_log(changes_df: pd.DataFrame, change_log_path: str) -> None:
    """
    3.1 Append detected changes to a CSV log file.

    The header is written only when the file is created.
    """
    if changes_df.empty:
        logger.debug(f"No changes to record in {change_log_path}")
        return

    final_df = changes_df.reindex(columns=CHANGE_LOG_COLUMNS)
    directory = os.path.dirname(change_log_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    if os.path.exists(change_log_path):
        final_df.to_csv(change_log_path, mode='a', header=False, index=False)
        logger.info(f"Appended {len(final_df):,} changes to {change_log_path}")
    else:
        final_df.to_csv(change_log_path, mode='w', header=True, index=False)
        logger.info(f"Created change log with {len(final_df):,} changes at {change_log_path}")
