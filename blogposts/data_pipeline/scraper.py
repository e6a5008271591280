"""
Static Page Scraper
===================
Fetches a static HTML page and extracts a tidy table from it.

Author: Analysis Posts Team
"""
import logging
import re
from io import StringIO
from pathlib import Path
from typing import List, Optional

import pandas as pd
import requests

from ..config import LOGGING_CONFIG, SCRAPE_CONFIG

logging.basicConfig(
    level=LOGGING_CONFIG.log_level,
    format=LOGGING_CONFIG.log_format
)
logger = logging.getLogger(__name__)

_FOOTNOTE_RE = re.compile(r"\[[^\]]{1,4}\]")
_NUMERIC_RE = re.compile(r"^[-+−]?\d+(\.\d+)?%?$")


def fetch_page(
    url: str,
    timeout: Optional[float] = None,
    user_agent: Optional[str] = None
) -> str:
    """Download a page and return its HTML."""
    logger.info(f"Fetching {url}")
    resp = requests.get(
        url,
        timeout=timeout or SCRAPE_CONFIG.request_timeout,
        headers={"User-Agent": user_agent or SCRAPE_CONFIG.user_agent},
    )
    resp.raise_for_status()
    logger.info(f"Fetched {len(resp.text)} characters")
    return resp.text


def extract_tables(html: str, match: Optional[str] = None) -> List[pd.DataFrame]:
    """
    Parse every <table> in the page.

    Args:
        html: Page source
        match: Only keep tables containing this text

    Returns:
        List of DataFrames, one per table
    """
    try:
        tables = pd.read_html(StringIO(html), match=match or ".+", flavor="lxml")
    except ValueError as exc:
        raise ValueError(f"No table found in page (match={match!r})") from exc
    logger.info(f"Found {len(tables)} tables")
    return tables


def _clean_text(value):
    if not isinstance(value, str):
        return value
    text = _FOOTNOTE_RE.sub("", value)
    text = text.replace("\xa0", " ").strip()
    return text if text not in ("", "—", "–", "-", "N/A", "n/a") else None


def _flatten_column(col) -> str:
    if isinstance(col, tuple):
        parts = []
        for part in col:
            part = str(part)
            if part.startswith("Unnamed") or part in parts:
                continue
            parts.append(part)
        col = " ".join(parts)
    return _clean_text(str(col)) or ""


def _unique_names(names: List[str]) -> List[str]:
    """Fill blank headers and suffix repeats with _2, _3, ..."""
    used = set()
    unique = []
    for i, name in enumerate(names):
        base = name or f"column_{i + 1}"
        name, k = base, 1
        while name in used:
            k += 1
            name = f"{base}_{k}"
        used.add(name)
        unique.append(name)
    return unique


def clean_scraped_table(df: pd.DataFrame) -> pd.DataFrame:
    """
    Tidy a table straight out of read_html.

    Flattens multi-level headers, strips footnote markers and blank cells,
    removes thousands separators and converts numeric-looking columns.
    """
    df = df.copy()
    df.columns = _unique_names([_flatten_column(c) for c in df.columns])

    for col in df.columns:
        if pd.api.types.is_numeric_dtype(df[col]):
            continue
        cleaned = df[col].map(_clean_text)
        candidate = cleaned.dropna().astype(str).str.replace(",", "", regex=False)
        if len(candidate) and candidate.str.match(_NUMERIC_RE).all():
            numbers = (cleaned.astype(str)
                       .str.replace(",", "", regex=False)
                       .str.replace("%", "", regex=False)
                       .str.replace("−", "-", regex=False))
            df[col] = pd.to_numeric(numbers, errors="coerce")
        else:
            df[col] = cleaned

    df = df.dropna(axis=1, how="all").dropna(axis=0, how="all")
    return df.reset_index(drop=True)


def scrape_table(
    url: Optional[str] = None,
    match: Optional[str] = None,
    table_index: Optional[int] = None
) -> pd.DataFrame:
    """Fetch a page and return one cleaned table from it."""
    url = url or SCRAPE_CONFIG.url
    match = match if match is not None else SCRAPE_CONFIG.table_match
    table_index = SCRAPE_CONFIG.table_index if table_index is None else table_index

    tables = extract_tables(fetch_page(url), match=match)
    if table_index >= len(tables):
        raise ValueError(
            f"Table index {table_index} out of range ({len(tables)} tables found)"
        )
    table = clean_scraped_table(tables[table_index])
    logger.info(f"Scraped table shape: {table.shape}")
    return table


def load_or_scrape(cache_path, url: Optional[str] = None, **kwargs) -> pd.DataFrame:
    """
    Reuse a cached copy of the table, scraping it only when absent.

    An explicit url always re-scrapes and overwrites the cache.
    """
    cache_path = Path(cache_path)
    if url is None and cache_path.exists():
        logger.info(f"Using cached table {cache_path}")
        return pd.read_csv(cache_path)

    table = scrape_table(url=url, **kwargs)
    cache_path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(cache_path, index=False)
    logger.info(f"Cached table to {cache_path}")
    return table
