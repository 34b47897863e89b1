"""Unit tests for the Glue service role manager."""

import json
import pytest
from unittest.mock import patch

from glue_lake.iam.role import GlueRoleManager, GLUE_SERVICE_POLICY_ARN


@pytest.fixture
def iam(mock_client):
    with patch('glue_lake.iam.role.get_boto3_client', return_value=mock_client):
        yield mock_client


@pytest.fixture
def manager(iam, buckets):
    return GlueRoleManager(
        role_name='AWSGlueServiceRole-test',
        source_bucket=buckets['source'],
        target_bucket=buckets['target'],
        results_bucket=buckets['results'],
    )


class TestCreateRole:
    """Test role creation."""

    def test_create_role_uses_glue_trust_policy(self, manager, iam):
        iam.create_role.return_value = {'Role': {'Arn': 'arn:aws:iam::123456789012:role/AWSGlueServiceRole-test'}}

        assert manager.create_role() is True

        kwargs = iam.create_role.call_args.kwargs
        trust = json.loads(kwargs['AssumeRolePolicyDocument'])
        assert trust['Statement'][0]['Principal'] == {'Service': 'glue.amazonaws.com'}
        assert kwargs['RoleName'] == 'AWSGlueServiceRole-test'

    def test_existing_role_is_success(self, manager, iam, client_error):
        iam.create_role.side_effect = client_error('EntityAlreadyExists')
        assert manager.create_role() is True

    def test_other_errors_fail(self, manager, iam, client_error):
        iam.create_role.side_effect = client_error('AccessDenied')
        assert manager.create_role() is False


class TestBucketAccessPolicy:
    """Test the inline S3 policy."""

    def test_puts_three_statement_policy(self, manager, iam, buckets):
        assert manager.put_bucket_access_policy() is True

        kwargs = iam.put_role_policy.call_args.kwargs
        assert kwargs['PolicyName'] == 'AWSGlueServiceRole-test-S3Access'
        document = json.loads(kwargs['PolicyDocument'])
        assert [s['Sid'] for s in document['Statement']] == [
            'SourceBucketRead', 'TargetBucketWrite', 'QueryResultsWrite'
        ]
        resources = [r for s in document['Statement'] for r in s['Resource']]
        assert f"arn:aws:s3:::{buckets['source']}" in resources
        assert f"arn:aws:s3:::{buckets['results']}/*" in resources

    def test_refuses_invalid_buckets(self, iam):
        manager = GlueRoleManager('role', 'same-bucket', 'same-bucket', 'acme-results')

        assert manager.put_bucket_access_policy() is False
        iam.put_role_policy.assert_not_called()


class TestSetupRole:
    """Test the full role setup."""

    def test_setup_role_runs_every_step(self, manager, iam):
        iam.get_role.return_value = {'Role': {'RoleName': 'r', 'Arn': 'arn:aws:iam::1:role/r'}}
        iam.list_attached_role_policies.return_value = {'AttachedPolicies': [{'PolicyName': 'AWSGlueServiceRole'}]}
        iam.list_role_policies.return_value = {'PolicyNames': ['r-S3Access']}

        assert manager.setup_role() is True

        iam.create_role.assert_called_once()
        iam.attach_role_policy.assert_called_once_with(
            RoleName='AWSGlueServiceRole-test', PolicyArn=GLUE_SERVICE_POLICY_ARN
        )
        iam.put_role_policy.assert_called_once()

    def test_setup_role_reports_failed_step(self, manager, iam, client_error):
        iam.attach_role_policy.side_effect = client_error('AccessDenied')
        assert manager.setup_role() is False


class TestRoleLookup:
    """Test role lookups and deletion."""

    def test_get_role_arn_missing(self, manager, iam, client_error):
        iam.get_role.side_effect = client_error('NoSuchEntity')
        assert manager.get_role_arn() is None

    def test_get_role_info(self, manager, iam):
        iam.get_role.return_value = {'Role': {'RoleName': 'r', 'Arn': 'arn:aws:iam::1:role/r'}}
        iam.list_attached_role_policies.return_value = {'AttachedPolicies': [{'PolicyName': 'AWSGlueServiceRole'}]}
        iam.list_role_policies.return_value = {'PolicyNames': ['r-S3Access']}

        info = manager.get_role_info()

        assert info['role_arn'] == 'arn:aws:iam::1:role/r'
        assert info['attached_policies'] == ['AWSGlueServiceRole']
        assert info['inline_policies'] == ['r-S3Access']

    def test_delete_role_detaches_then_deletes(self, manager, iam):
        iam.list_attached_role_policies.return_value = {
            'AttachedPolicies': [{'PolicyName': 'AWSGlueServiceRole', 'PolicyArn': GLUE_SERVICE_POLICY_ARN}]
        }
        iam.list_role_policies.return_value = {'PolicyNames': ['AWSGlueServiceRole-test-S3Access']}

        assert manager.delete_role() is True

        iam.detach_role_policy.assert_called_once_with(
            RoleName='AWSGlueServiceRole-test', PolicyArn=GLUE_SERVICE_POLICY_ARN
        )
        iam.delete_role_policy.assert_called_once_with(
            RoleName='AWSGlueServiceRole-test', PolicyName='AWSGlueServiceRole-test-S3Access'
        )
        iam.delete_role.assert_called_once_with(RoleName='AWSGlueServiceRole-test')

    def test_delete_missing_role_is_success(self, manager, iam, client_error):
        iam.list_attached_role_policies.side_effect = client_error('NoSuchEntity')
        assert manager.delete_role() is True
