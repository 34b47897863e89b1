"""Pytest configuration and fixtures."""

import pytest
import pandas as pd
from unittest.mock import MagicMock
from botocore.exceptions import ClientError

from glue_lake.config import Config, AWSConfig, S3Config, GlueConfig, AthenaConfig


@pytest.fixture(autouse=True)
def mock_aws_credentials(monkeypatch):
    """Mock AWS credentials for testing."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def client_error():
    """Factory for botocore ClientErrors carrying a given error code."""
    def _make(code, operation='Operation'):
        return ClientError({'Error': {'Code': code, 'Message': f'{code} raised'}}, operation)
    return _make


@pytest.fixture
def mock_client():
    """A boto3 client stand-in."""
    return MagicMock()


@pytest.fixture
def buckets():
    return {
        'source': 'acme-raw-files',
        'target': 'acme-curated',
        'results': 'acme-athena-results',
    }


@pytest.fixture
def pipeline_config(buckets):
    """Config pointing at three distinct test buckets."""
    return Config(
        aws=AWSConfig(region='us-east-1'),
        s3=S3Config(
            source_bucket=buckets['source'],
            target_bucket=buckets['target'],
            results_bucket=buckets['results'],
            source_prefix='raw/',
            target_prefix='curated/',
            scripts_prefix='scripts/glue/',
        ),
        glue=GlueConfig(
            catalog_database='test_catalog',
            role_name='AWSGlueServiceRole-test',
            source_crawler='crawler-test-source',
            target_crawler='crawler-test-target',
            job_name='job-test',
            glue_version='4.0',
            worker_type='G.1X',
            number_of_workers=2,
        ),
        athena=AthenaConfig(
            workgroup='primary',
            results_prefix='athena-results/',
            query_timeout=30,
            poll_interval=0,
        ),
    )


@pytest.fixture
def sample_flat_records():
    """Rows as they would appear in an uploaded CSV file."""
    return pd.DataFrame({
        'Order ID': [1001, 1002, 1003],
        'Customer Name': ['Ada', 'Grace', 'Linus'],
        'Amount': ['12.50', '8.00', '101.25'],
        'Order Date': ['2024-01-02', '2024-01-03', '2024-01-03'],
    })


@pytest.fixture
def source_columns():
    """Catalog columns the source crawler infers for sample_flat_records."""
    return [
        {'Name': 'order id', 'Type': 'bigint'},
        {'Name': 'customer name', 'Type': 'string'},
        {'Name': 'amount', 'Type': 'double'},
        {'Name': 'order date', 'Type': 'string'},
    ]
