"""glue-lake: automate a raw-to-curated S3 data lake with AWS Glue and Athena."""

__version__ = "0.1.0"
