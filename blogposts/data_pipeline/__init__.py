"""
Data Pipeline Module
====================
Loading, cleaning and rescaling of tabular data, and static-page scraping.
"""

from .preprocess import (
    DataPipeline,
    SchemaValidator,
    DataQualityChecker,
    drop_missing,
    rescale_unit_interval,
    percent_to_proportion,
    squeeze_unit_interval,
    one_hot_encode
)
from .scraper import fetch_page, extract_tables, clean_scraped_table, scrape_table, load_or_scrape

__all__ = [
    'DataPipeline',
    'SchemaValidator',
    'DataQualityChecker',
    'drop_missing',
    'rescale_unit_interval',
    'percent_to_proportion',
    'squeeze_unit_interval',
    'one_hot_encode',
    'fetch_page',
    'extract_tables',
    'clean_scraped_table',
    'scrape_table',
    'load_or_scrape'
]
