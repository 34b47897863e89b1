"""
Create the IAM role AWS Glue assumes for the crawlers and the ETL job.

The role includes:
- Trust policy for glue.amazonaws.com
- AWS managed policy for the Glue service
- Inline S3 policy covering the source, target and query-results buckets
"""

import json
from typing import Dict, Optional
from botocore.exceptions import ClientError

from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, error_code
from .policy import build_pipeline_policy, assert_valid_policy, glue_trust_policy

logger = get_logger(__name__)

GLUE_SERVICE_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AWSGlueServiceRole"


class GlueRoleManager:
    """Manages creation and configuration of the Glue service role."""

    def __init__(
        self,
        role_name: str,
        source_bucket: str,
        target_bucket: str,
        results_bucket: str,
        region: str = 'us-east-1'
    ):
        """
        Initialize Glue Role Manager.

        Args:
            role_name: Name for the IAM role.
            source_bucket: Bucket the role may read.
            target_bucket: Bucket the role may write.
            results_bucket: Bucket receiving Athena query results.
            region: AWS region.
        """
        self.role_name = role_name
        self.source_bucket = source_bucket
        self.target_bucket = target_bucket
        self.results_bucket = results_bucket
        self.region = region
        self.iam_client = get_boto3_client('iam', region=region)

        logger.info(f"Initialized GlueRoleManager for role: {self.role_name}")

    @property
    def inline_policy_name(self) -> str:
        return f"{self.role_name}-S3Access"

    def create_role(self) -> bool:
        """
        Create IAM role with the Glue trust policy.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info(f"Creating IAM role: {self.role_name}")

            response = self.iam_client.create_role(
                RoleName=self.role_name,
                AssumeRolePolicyDocument=json.dumps(glue_trust_policy()),
                Description="IAM role for AWS Glue to move flat files from the source bucket to the target bucket",
                Tags=[
                    {'Key': 'Project', 'Value': 'glue-lake'},
                    {'Key': 'Purpose', 'Value': 'GlueService'},
                    {'Key': 'ManagedBy', 'Value': 'Automation'}
                ]
            )

            logger.info(f"Successfully created role: {response['Role']['Arn']}")
            return True

        except ClientError as e:
            if error_code(e) == 'EntityAlreadyExists':
                logger.warning(f"Role {self.role_name} already exists")
                return True
            logger.error(f"Failed to create role: {e}")
            return False

    def attach_managed_policy(self) -> bool:
        """
        Attach AWS managed Glue service policy.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info("Attaching AWS managed Glue service policy")
            self.iam_client.attach_role_policy(
                RoleName=self.role_name,
                PolicyArn=GLUE_SERVICE_POLICY_ARN
            )
            logger.info("Successfully attached managed policy")
            return True

        except ClientError as e:
            logger.error(f"Failed to attach managed policy: {e}")
            return False

    def put_bucket_access_policy(self) -> bool:
        """
        Validate the three-statement bucket policy and put it inline on the role.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            document = build_pipeline_policy(self.source_bucket, self.target_bucket, self.results_bucket)
            assert_valid_policy(
                document,
                expected_buckets=[self.source_bucket, self.target_bucket, self.results_bucket]
            )
        except ValueError as e:
            logger.error(f"Refusing to attach bucket policy: {e}")
            return False

        try:
            logger.info(f"Putting inline policy {self.inline_policy_name}")
            self.iam_client.put_role_policy(
                RoleName=self.role_name,
                PolicyName=self.inline_policy_name,
                PolicyDocument=document.to_json(indent=None)
            )
            logger.info(f"Successfully created inline policy: {self.inline_policy_name}")
            return True

        except ClientError as e:
            logger.error(f"Failed to put bucket access policy: {e}")
            return False

    def get_role_arn(self) -> Optional[str]:
        """
        Get ARN for the IAM role.

        Returns:
            str: Role ARN, None if role doesn't exist.
        """
        try:
            response = self.iam_client.get_role(RoleName=self.role_name)
            return response['Role']['Arn']

        except ClientError as e:
            if error_code(e) == 'NoSuchEntity':
                logger.error(f"IAM role {self.role_name} does not exist. Please create it first.")
            else:
                logger.error(f"Failed to get role ARN: {e}")
            return None

    def get_role_info(self) -> Optional[Dict]:
        """
        Get information about the role.

        Returns:
            dict: Role information, None if role doesn't exist.
        """
        try:
            role = self.iam_client.get_role(RoleName=self.role_name)['Role']

            attached = self.iam_client.list_attached_role_policies(RoleName=self.role_name)
            inline = self.iam_client.list_role_policies(RoleName=self.role_name)

            created = role.get('CreateDate')
            return {
                'role_name': role['RoleName'],
                'role_arn': role['Arn'],
                'created_date': created.isoformat() if hasattr(created, 'isoformat') else created,
                'attached_policies': [p['PolicyName'] for p in attached['AttachedPolicies']],
                'inline_policies': inline['PolicyNames']
            }

        except ClientError as e:
            if error_code(e) == 'NoSuchEntity':
                logger.warning(f"Role {self.role_name} does not exist")
            else:
                logger.error(f"Failed to get role info: {e}")
            return None

    def setup_role(self) -> bool:
        """
        Complete setup of the Glue IAM role.

        Returns:
            bool: True if all steps successful, False otherwise.
        """
        logger.info("=" * 80)
        logger.info("Starting Glue IAM Role Setup")
        logger.info("=" * 80)

        steps = [
            ("Create IAM role", self.create_role),
            ("Attach managed Glue service policy", self.attach_managed_policy),
            ("Put bucket access policy", self.put_bucket_access_policy)
        ]

        all_successful = True
        for step_name, step_func in steps:
            logger.info(f"[STEP] {step_name}")
            if not step_func():
                logger.error(f"Failed: {step_name}")
                all_successful = False
            else:
                logger.info(f"Completed: {step_name}")

        if all_successful:
            logger.info("SUCCESS: Glue IAM role setup completed successfully!")
            info = self.get_role_info()
            if info:
                logger.info(f"  Role ARN: {info['role_arn']}")
                logger.info(f"  Attached Policies: {', '.join(info['attached_policies'])}")
                logger.info(f"  Inline Policies: {', '.join(info['inline_policies'])}")
        else:
            logger.error("FAILED: Some steps failed during role setup")

        return all_successful

    def delete_role(self) -> bool:
        """
        Detach managed policies, delete inline policies, then delete the role.

        Returns:
            bool: True if the role is gone, False otherwise.
        """
        try:
            logger.info(f"Deleting IAM role: {self.role_name}")

            attached = self.iam_client.list_attached_role_policies(RoleName=self.role_name)
            for policy in attached['AttachedPolicies']:
                self.iam_client.detach_role_policy(RoleName=self.role_name, PolicyArn=policy['PolicyArn'])

            inline = self.iam_client.list_role_policies(RoleName=self.role_name)
            for policy_name in inline['PolicyNames']:
                self.iam_client.delete_role_policy(RoleName=self.role_name, PolicyName=policy_name)

            self.iam_client.delete_role(RoleName=self.role_name)
            logger.info(f"Successfully deleted role: {self.role_name}")
            return True

        except ClientError as e:
            if error_code(e) == 'NoSuchEntity':
                logger.warning(f"Role {self.role_name} does not exist")
                return True
            logger.error(f"Failed to delete role: {e}")
            return False
