"""Glue Data Catalog database and crawlers."""

from .database import GlueDatabaseManager
from .crawler import GlueCrawlerManager, describe_table

__all__ = ["GlueDatabaseManager", "GlueCrawlerManager", "describe_table"]
