"""Unit tests for bucket name, ARN and URI helpers."""

import pytest

from glue_lake.naming import (
    bucket_arn,
    normalize_prefix,
    objects_arn,
    parse_s3_arn,
    s3_uri,
    validate_bucket_name,
)


class TestValidateBucketName:
    """Test S3 bucket naming rules."""

    @pytest.mark.parametrize('name', ['abc', 'acme-raw-files', 'logs.2024.example', 'a' * 63])
    def test_accepts_valid_names(self, name):
        assert validate_bucket_name(name) == name

    @pytest.mark.parametrize('name', [
        '',
        'ab',
        'a' * 64,
        'Acme-Raw',
        'acme_raw',
        '-acme',
        'acme-',
        'acme..raw',
        '192.168.10.1',
        'xn--acme',
        'acme-s3alias',
        'acme-raw\n',
    ])
    def test_rejects_invalid_names(self, name):
        with pytest.raises(ValueError):
            validate_bucket_name(name)


class TestArns:
    """Test ARN builders and parser."""

    def test_bucket_and_object_arns(self):
        assert bucket_arn('acme-raw') == 'arn:aws:s3:::acme-raw'
        assert objects_arn('acme-raw') == 'arn:aws:s3:::acme-raw/*'
        assert objects_arn('acme-raw', '/raw') == 'arn:aws:s3:::acme-raw/raw/*'

    def test_parse_s3_arn(self):
        assert parse_s3_arn('arn:aws:s3:::acme-raw') == ('acme-raw', '')
        assert parse_s3_arn('arn:aws:s3:::acme-raw/raw/*') == ('acme-raw', 'raw/*')

    @pytest.mark.parametrize('arn', ['arn:aws:iam::123456789012:role/x', 'arn:aws:s3:::', 'acme-raw'])
    def test_parse_rejects_non_s3(self, arn):
        with pytest.raises(ValueError):
            parse_s3_arn(arn)


class TestPrefixes:
    """Test prefix normalization and URIs."""

    @pytest.mark.parametrize('raw,expected', [
        ('', ''),
        ('/', ''),
        ('raw', 'raw/'),
        ('/raw/', 'raw/'),
        ('raw//', 'raw/'),
        ('a/b', 'a/b/'),
    ])
    def test_normalize_prefix(self, raw, expected):
        assert normalize_prefix(raw) == expected

    def test_s3_uri(self):
        assert s3_uri('acme-raw', 'raw') == 's3://acme-raw/raw/'
        assert s3_uri('acme-raw') == 's3://acme-raw/'
