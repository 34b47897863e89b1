"""Configuration management for the glue-lake pipeline."""

import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class AWSConfig(BaseModel):
    """AWS configuration settings."""

    region: str = Field(default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"))


class S3Config(BaseModel):
    """Bucket names and key prefixes for the three storage locations."""

    source_bucket: str = Field(default_factory=lambda: os.getenv("SOURCE_BUCKET", ""))
    target_bucket: str = Field(default_factory=lambda: os.getenv("TARGET_BUCKET", ""))
    results_bucket: str = Field(default_factory=lambda: os.getenv("RESULTS_BUCKET", ""))
    source_prefix: str = Field(default_factory=lambda: os.getenv("SOURCE_PREFIX", "raw/"))
    target_prefix: str = Field(default_factory=lambda: os.getenv("TARGET_PREFIX", "curated/"))
    scripts_prefix: str = Field(default_factory=lambda: os.getenv("SCRIPTS_PREFIX", "scripts/glue/"))

    @property
    def bucket_names(self) -> list:
        """Source, target and results bucket names, in that order."""
        return [self.source_bucket, self.target_bucket, self.results_bucket]


class GlueConfig(BaseModel):
    """AWS Glue configuration."""

    catalog_database: str = Field(default_factory=lambda: os.getenv("GLUE_DATABASE", "glue_lake_catalog"))
    role_name: str = Field(default_factory=lambda: os.getenv("GLUE_ROLE_NAME", "AWSGlueServiceRole-glue-lake"))
    source_crawler: str = Field(default_factory=lambda: os.getenv("GLUE_SOURCE_CRAWLER", "crawler-glue-lake-source"))
    target_crawler: str = Field(default_factory=lambda: os.getenv("GLUE_TARGET_CRAWLER", "crawler-glue-lake-target"))
    job_name: str = Field(default_factory=lambda: os.getenv("GLUE_JOB_NAME", "job-glue-lake-csv-to-parquet"))
    glue_version: str = Field(default_factory=lambda: os.getenv("GLUE_VERSION", "4.0"))
    worker_type: str = Field(default_factory=lambda: os.getenv("GLUE_WORKER_TYPE", "G.1X"))
    number_of_workers: int = Field(default_factory=lambda: int(os.getenv("GLUE_NUMBER_OF_WORKERS", "2")))


class AthenaConfig(BaseModel):
    """Amazon Athena configuration."""

    workgroup: str = Field(default_factory=lambda: os.getenv("ATHENA_WORKGROUP", "primary"))
    results_prefix: str = Field(default_factory=lambda: os.getenv("RESULTS_PREFIX", "athena-results/"))
    query_timeout: int = Field(default_factory=lambda: int(os.getenv("ATHENA_QUERY_TIMEOUT", "300")))
    poll_interval: int = Field(default_factory=lambda: int(os.getenv("ATHENA_POLL_INTERVAL", "2")))


class Config(BaseModel):
    """Main configuration object."""

    aws: AWSConfig = Field(default_factory=AWSConfig)
    s3: S3Config = Field(default_factory=S3Config)
    glue: GlueConfig = Field(default_factory=GlueConfig)
    athena: AthenaConfig = Field(default_factory=AthenaConfig)

    # Project settings
    project_name: str = "glue-lake"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "dev"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


# Global configuration instance
config = Config()
