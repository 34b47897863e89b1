"""
Create and manage the pipeline's S3 buckets.

Each of the source, target and query-results buckets gets:
- Public access block
- Default server-side encryption (AES-256)
- Governance tags
- Placeholder objects for its folders
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional
from botocore.exceptions import ClientError

from ..naming import normalize_prefix, validate_bucket_name
from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, error_code
from .layout import LayoutError

logger = get_logger(__name__)

DELETE_BATCH_SIZE = 1000


class BucketManager:
    """Manages creation, uploads and cleanup for one S3 bucket."""

    def __init__(self, bucket_name: str, region: str = 'us-east-1'):
        """
        Initialize Bucket Manager.

        Args:
            bucket_name: S3 bucket name; validated against the naming rules.
            region: AWS region for bucket creation.
        """
        self.bucket_name = validate_bucket_name(bucket_name)
        self.region = region
        self.s3_client = get_boto3_client('s3', region=region)

        logger.info(f"Initialized BucketManager for bucket: {self.bucket_name}")

    def create_bucket(self) -> bool:
        """
        Create S3 bucket with appropriate configuration.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info(f"Creating S3 bucket: {self.bucket_name}")

            # us-east-1 rejects an explicit LocationConstraint
            if self.region == 'us-east-1':
                self.s3_client.create_bucket(Bucket=self.bucket_name)
            else:
                self.s3_client.create_bucket(
                    Bucket=self.bucket_name,
                    CreateBucketConfiguration={'LocationConstraint': self.region}
                )

            logger.info(f"Successfully created bucket: {self.bucket_name}")
            return True

        except ClientError as e:
            code = error_code(e)
            if code == 'BucketAlreadyOwnedByYou':
                logger.warning(f"Bucket {self.bucket_name} already exists and is owned by you")
                return True
            elif code == 'BucketAlreadyExists':
                logger.error(f"Bucket {self.bucket_name} already exists but is owned by another account")
                return False
            else:
                logger.error(f"Failed to create bucket: {e}")
                return False

    def block_public_access(self) -> bool:
        """
        Enable public access block to prevent accidental public exposure.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info(f"Enabling public access block for bucket: {self.bucket_name}")
            self.s3_client.put_public_access_block(
                Bucket=self.bucket_name,
                PublicAccessBlockConfiguration={
                    'BlockPublicAcls': True,
                    'IgnorePublicAcls': True,
                    'BlockPublicPolicy': True,
                    'RestrictPublicBuckets': True
                }
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to enable public access block: {e}")
            return False

    def enable_encryption(self) -> bool:
        """
        Enable default server-side encryption (AES-256) for the bucket.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info(f"Enabling encryption for bucket: {self.bucket_name}")
            self.s3_client.put_bucket_encryption(
                Bucket=self.bucket_name,
                ServerSideEncryptionConfiguration={
                    'Rules': [
                        {
                            'ApplyServerSideEncryptionByDefault': {
                                'SSEAlgorithm': 'AES256'
                            },
                            'BucketKeyEnabled': True
                        }
                    ]
                }
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to enable encryption: {e}")
            return False

    def add_tags(self, purpose: str) -> bool:
        """
        Add governance tags to the bucket.

        Args:
            purpose: Role of the bucket in the pipeline (Source, Target, QueryResults).

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            tags = [
                {'Key': 'Project', 'Value': 'glue-lake'},
                {'Key': 'Purpose', 'Value': purpose},
                {'Key': 'ManagedBy', 'Value': 'Automation'}
            ]
            self.s3_client.put_bucket_tagging(
                Bucket=self.bucket_name,
                Tagging={'TagSet': tags}
            )
            logger.info(f"Successfully added {len(tags)} tags to bucket")
            return True

        except ClientError as e:
            logger.error(f"Failed to add tags: {e}")
            return False

    def create_prefix(self, prefix: str) -> bool:
        """
        Create a zero-byte folder placeholder so the folder shows up in the console.

        Args:
            prefix: Folder name, e.g. 'raw/'.

        Returns:
            bool: True if successful, False otherwise.
        """
        prefix = normalize_prefix(prefix)
        if not prefix:
            logger.error("Refusing to create a placeholder at the bucket root")
            return False

        try:
            self.s3_client.put_object(Bucket=self.bucket_name, Key=prefix, Body=b'')
            logger.info(f"Created folder s3://{self.bucket_name}/{prefix}")
            return True

        except ClientError as e:
            logger.error(f"Failed to create folder {prefix}: {e}")
            return False

    def setup_bucket(self, purpose: str, prefixes: Iterable[str] = ()) -> bool:
        """
        Complete setup of the bucket.

        Args:
            purpose: Tag value describing the bucket's role.
            prefixes: Folders to create.

        Returns:
            bool: True if all steps successful, False otherwise.
        """
        logger.info("=" * 80)
        logger.info(f"Setting up {purpose} bucket: {self.bucket_name}")
        logger.info("=" * 80)

        steps = [
            ("Create bucket", self.create_bucket),
            ("Block public access", self.block_public_access),
            ("Enable encryption", self.enable_encryption),
            ("Add tags", lambda: self.add_tags(purpose)),
        ]
        for prefix in prefixes:
            steps.append((f"Create folder {prefix}", lambda p=prefix: self.create_prefix(p)))

        all_successful = True
        for step_name, step_func in steps:
            logger.info(f"[STEP] {step_name}")
            if not step_func():
                logger.error(f"Failed: {step_name}")
                # Later steps need the bucket to exist
                if step_name == "Create bucket":
                    return False
                all_successful = False
            else:
                logger.info(f"Completed: {step_name}")

        return all_successful

    def upload_file(self, file_path: str, prefix: str, key_name: Optional[str] = None) -> str:
        """
        Upload a local file under a folder of the bucket.

        Args:
            file_path: Local file path.
            prefix: Destination folder; must not be empty.
            key_name: Object name inside the folder (defaults to the file name).

        Returns:
            str: The object key written.

        Raises:
            LayoutError: If the prefix is empty (root-level placement).
            FileNotFoundError: If the local file does not exist.
            ClientError: If the upload fails.
        """
        prefix = normalize_prefix(prefix)
        if not prefix:
            raise LayoutError(
                f"Refusing to upload {file_path} to the root of s3://{self.bucket_name}/; "
                "crawled tables over root-level files return no rows"
            )

        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        key = f"{prefix}{key_name or path.name}"
        logger.info(f"Uploading {file_path} to s3://{self.bucket_name}/{key}")
        self.s3_client.upload_file(str(path), self.bucket_name, key)
        logger.info(f"Successfully uploaded to s3://{self.bucket_name}/{key}")
        return key

    def upload_directory(self, directory: str, prefix: str, pattern: str = "*.csv") -> List[str]:
        """
        Upload every file matching a pattern from a local directory.

        Returns:
            list: Object keys written, in sorted file order.
        """
        root = Path(directory)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {directory}")

        files = sorted(p for p in root.glob(pattern) if p.is_file())
        if not files:
            logger.warning(f"No files matching {pattern} in {directory}")

        return [self.upload_file(str(p), prefix) for p in files]

    def list_objects(self, prefix: str = "") -> List[Dict]:
        """
        List objects with key and size.

        Returns:
            list: Dicts with 'Key' and 'Size', empty on failure.
        """
        try:
            paginator = self.s3_client.get_paginator('list_objects_v2')
            objects = []
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                for obj in page.get('Contents', []):
                    objects.append({'Key': obj['Key'], 'Size': obj.get('Size', 0)})
            return objects

        except ClientError as e:
            logger.error(f"Failed to list objects in {self.bucket_name}: {e}")
            return []

    def empty_bucket(self) -> int:
        """
        Delete every object in the bucket.

        Returns:
            int: Number of objects S3 reports as deleted.
        """
        keys = [obj['Key'] for obj in self.list_objects()]
        deleted = 0
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = self.s3_client.delete_objects(
                Bucket=self.bucket_name,
                Delete={'Objects': [{'Key': key} for key in batch]}
            )
            deleted += len(response.get('Deleted', []))

            for error in response.get('Errors', []):
                logger.warning(f"Failed to delete s3://{self.bucket_name}/{error.get('Key')}: {error.get('Code')}")

        logger.info(f"Deleted {deleted} objects from {self.bucket_name}")
        return deleted

    def delete_bucket(self, force: bool = False) -> bool:
        """
        Delete the bucket.

        Args:
            force: Empty the bucket first.

        Returns:
            bool: True if the bucket is gone, False otherwise.
        """
        try:
            if force:
                self.empty_bucket()
            self.s3_client.delete_bucket(Bucket=self.bucket_name)
            logger.info(f"Deleted bucket: {self.bucket_name}")
            return True

        except ClientError as e:
            code = error_code(e)
            if code == 'NoSuchBucket':
                logger.warning(f"Bucket {self.bucket_name} does not exist")
                return True
            elif code == 'BucketNotEmpty':
                logger.error(f"Bucket {self.bucket_name} is not empty; pass force=True to empty it first")
                return False
            logger.error(f"Failed to delete bucket: {e}")
            return False
