"""Unit tests for AWS helper functions."""

import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError

from glue_lake.utils.aws_helpers import (
    get_boto3_client,
    error_code,
    list_s3_objects,
    check_s3_bucket_exists,
)


class TestBoto3Helpers:
    """Test Boto3 helper functions."""

    @patch('glue_lake.utils.aws_helpers.boto3')
    def test_get_boto3_client(self, mock_boto3):
        """Test getting Boto3 client."""
        mock_client = Mock()
        mock_boto3.client.return_value = mock_client

        client = get_boto3_client('glue', region='eu-west-1')

        mock_boto3.client.assert_called_once_with('glue', region_name='eu-west-1')
        assert client == mock_client

    def test_error_code(self, client_error):
        assert error_code(client_error('NoSuchEntity')) == 'NoSuchEntity'


class TestS3Operations:
    """Test S3 operation functions."""

    @patch('glue_lake.utils.aws_helpers.get_boto3_client')
    def test_list_s3_objects_pages(self, mock_get_client):
        mock_s3 = Mock()
        mock_s3.get_paginator.return_value.paginate.return_value = [
            {'Contents': [{'Key': 'raw/a.csv'}, {'Key': 'raw/b.csv'}]},
            {},
            {'Contents': [{'Key': 'raw/c.csv'}]},
        ]
        mock_get_client.return_value = mock_s3

        keys = list_s3_objects('my-bucket', prefix='raw/')

        assert keys == ['raw/a.csv', 'raw/b.csv', 'raw/c.csv']
        mock_s3.get_paginator.return_value.paginate.assert_called_once_with(Bucket='my-bucket', Prefix='raw/')

    @patch('glue_lake.utils.aws_helpers.get_boto3_client')
    def test_list_s3_objects_error_propagates(self, mock_get_client, client_error):
        mock_s3 = Mock()
        mock_s3.get_paginator.return_value.paginate.side_effect = client_error('AccessDenied')
        mock_get_client.return_value = mock_s3

        with pytest.raises(ClientError):
            list_s3_objects('my-bucket')

    @patch('glue_lake.utils.aws_helpers.get_boto3_client')
    def test_check_s3_bucket_exists_true(self, mock_get_client):
        """Test checking if S3 bucket exists."""
        mock_s3_client = Mock()
        mock_get_client.return_value = mock_s3_client

        result = check_s3_bucket_exists('my-bucket')

        assert result is True
        mock_s3_client.head_bucket.assert_called_once_with(Bucket='my-bucket')

    @patch('glue_lake.utils.aws_helpers.get_boto3_client')
    def test_check_s3_bucket_exists_missing(self, mock_get_client, client_error):
        mock_s3_client = Mock()
        mock_s3_client.head_bucket.side_effect = client_error('404')
        mock_get_client.return_value = mock_s3_client

        assert check_s3_bucket_exists('my-bucket') is False
