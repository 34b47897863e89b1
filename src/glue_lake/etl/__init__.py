"""Glue ETL job and its column mappings."""

from .mappings import ColumnMapping, build_column_mappings, normalize_column_name
from .job import GlueJobManager, job_arguments

__all__ = [
    "ColumnMapping",
    "build_column_mappings",
    "normalize_column_name",
    "GlueJobManager",
    "job_arguments",
]
