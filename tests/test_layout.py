"""
Unit tests for source bucket layout checks.

Files at the bucket root produce tables that return no rows in Athena;
these tests pin down which placements are errors and which are warnings.
"""

import pytest
from unittest.mock import patch
from botocore.exceptions import ClientError

from glue_lake.storage.layout import (
    ERROR,
    WARNING,
    LayoutError,
    check_source_layout,
    explain_empty_results,
    find_layout_issues,
)


class TestFindLayoutIssues:
    """Test the pure layout rules."""

    def test_clean_layout(self):
        keys = ['raw/', 'raw/orders-1.csv', 'raw/orders-2.csv']
        assert find_layout_issues(keys, 'raw/') == []

    def test_partitioned_layout_is_clean(self):
        keys = ['raw/year=2024/a.csv', 'raw/year=2025/b.csv']
        assert find_layout_issues(keys, 'raw') == []

    def test_root_level_file_is_error(self):
        keys = ['orders.csv', 'raw/orders-1.csv']
        issues = find_layout_issues(keys, 'raw/')

        assert len(issues) == 1
        assert issues[0].key == 'orders.csv'
        assert issues[0].severity == ERROR
        assert 'bucket root' in issues[0].message

    def test_only_root_files_reports_both_problems(self):
        issues = find_layout_issues(['orders.csv'], 'raw/')

        assert [i.severity for i in issues] == [ERROR, ERROR]
        assert issues[1].key == 'raw/'
        assert 'No data files' in issues[1].message

    def test_empty_prefix_is_error(self):
        issues = find_layout_issues(['raw/'], 'raw/')
        assert len(issues) == 1
        assert issues[0].is_error

    def test_file_beside_subfolders_is_warning(self):
        keys = ['raw/orders.csv', 'raw/2024/orders.csv']
        issues = find_layout_issues(keys, 'raw/')

        assert len(issues) == 1
        assert issues[0].key == 'raw/orders.csv'
        assert issues[0].severity == WARNING
        assert not issues[0].is_error

    def test_files_outside_prefix_are_ignored(self):
        keys = ['raw/a.csv', 'archive/old.csv']
        assert find_layout_issues(keys, 'raw/') == []


class TestCheckSourceLayout:
    """Test the bucket-listing wrapper."""

    @patch('glue_lake.storage.layout.list_s3_objects')
    def test_returns_issues_when_not_strict(self, mock_list):
        mock_list.return_value = ['orders.csv', 'raw/a.csv']

        issues = check_source_layout('acme-raw-files', 'raw/')

        assert len(issues) == 1
        mock_list.assert_called_once_with('acme-raw-files', region=None)

    @patch('glue_lake.storage.layout.list_s3_objects')
    def test_strict_raises_on_errors(self, mock_list):
        mock_list.return_value = ['orders.csv']

        with pytest.raises(LayoutError, match='bucket root'):
            check_source_layout('acme-raw-files', 'raw/', strict=True)

    @patch('glue_lake.storage.layout.list_s3_objects')
    def test_strict_ignores_warnings(self, mock_list):
        mock_list.return_value = ['raw/orders.csv', 'raw/2024/orders.csv']

        issues = check_source_layout('acme-raw-files', 'raw/', strict=True)

        assert [i.severity for i in issues] == [WARNING]

    @patch('glue_lake.storage.layout.list_s3_objects')
    def test_listing_failure_is_not_a_layout_error(self, mock_list, client_error):
        mock_list.side_effect = client_error('AccessDenied', 'ListObjectsV2')

        with pytest.raises(ClientError) as excinfo:
            check_source_layout('acme-raw-files', 'raw/', strict=True)

        assert not isinstance(excinfo.value, LayoutError)


class TestExplainEmptyResults:
    """Test the empty-result diagnosis."""

    @patch('glue_lake.storage.layout.list_s3_objects')
    def test_root_files_explained(self, mock_list):
        mock_list.return_value = ['a.csv', 'b.csv', 'raw/']

        hint = explain_empty_results('acme-raw-files', 'raw/')

        assert hint.startswith('2 file(s) sit at the root of s3://acme-raw-files/')
        assert "'raw/'" in hint

    @patch('glue_lake.storage.layout.list_s3_objects')
    def test_empty_prefix_explained(self, mock_list):
        mock_list.return_value = ['raw/']
        assert explain_empty_results('acme-raw-files', 'raw/') == "No data files found under 'raw/'"

    @patch('glue_lake.storage.layout.list_s3_objects')
    def test_good_layout_has_no_explanation(self, mock_list):
        mock_list.return_value = ['raw/a.csv']
        assert explain_empty_results('acme-raw-files', 'raw/') is None

    @patch('glue_lake.storage.layout.list_s3_objects')
    def test_unreadable_bucket_has_no_explanation(self, mock_list, client_error):
        mock_list.side_effect = client_error('NoSuchBucket', 'ListObjectsV2')
        assert explain_empty_results('acme-raw-files', 'raw/') is None
