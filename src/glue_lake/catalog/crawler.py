"""
Configure and run AWS Glue crawlers for schema discovery.

A crawler scans one S3 folder, infers column names and types from the
files it samples, and registers the result as a table in the Glue Data
Catalog. The pipeline uses two: one over the raw flat files in the source
bucket and one over the Parquet output in the target bucket.
"""

import json
import time
from typing import Dict, List, Optional, Tuple
from botocore.exceptions import ClientError

from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, error_code

logger = get_logger(__name__)


def describe_table(table: Dict) -> Dict:
    """
    Summarize a Glue table definition.

    Args:
        table: Table dict as returned by get_table / get_tables.

    Returns:
        dict: name, location, classification, columns and partition keys.
    """
    storage_descriptor = table.get('StorageDescriptor', {})
    parameters = table.get('Parameters', {})
    return {
        'name': table.get('Name'),
        'location': storage_descriptor.get('Location', 'N/A'),
        'classification': parameters.get('classification', 'unknown'),
        'columns': [
            {'Name': col['Name'], 'Type': col.get('Type', 'string')}
            for col in storage_descriptor.get('Columns', [])
        ],
        'partition_keys': [
            {'Name': key['Name'], 'Type': key.get('Type', 'string')}
            for key in table.get('PartitionKeys', [])
        ],
        'record_count': parameters.get('recordCount'),
    }


class GlueCrawlerManager:
    """Manages configuration and execution of one AWS Glue crawler."""

    def __init__(
        self,
        crawler_name: str,
        database_name: str,
        role_name: str,
        s3_target_path: str,
        region: str = 'us-east-1',
        table_prefix: str = ""
    ):
        """
        Initialize Glue Crawler Manager.

        Args:
            crawler_name: Name for the Glue crawler.
            database_name: Target Glue catalog database.
            role_name: IAM role name for the crawler.
            s3_target_path: Folder to crawl, e.g. s3://bucket/raw/.
            region: AWS region.
            table_prefix: Prefix prepended to the names of created tables.
        """
        self.crawler_name = crawler_name
        self.database_name = database_name
        self.role_name = role_name
        self.s3_target_path = s3_target_path
        self.region = region
        self.table_prefix = table_prefix
        self.glue_client = get_boto3_client('glue', region=region)
        self.iam_client = get_boto3_client('iam', region=region)

        logger.info(f"Initialized GlueCrawlerManager for crawler: {self.crawler_name}")

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

    def verify_database_exists(self) -> bool:
        try:
            self.glue_client.get_database(Name=self.database_name)
            return True

        except ClientError as e:
            if error_code(e) == 'EntityNotFoundException':
                logger.error(f"Database {self.database_name} does not exist. Please create it first.")
            else:
                logger.error(f"Failed to verify database: {e}")
            return False

    def build_crawler_config(self, role_arn: str) -> Dict:
        """Crawler definition shared by create and update."""
        crawler_config = {
            'Name': self.crawler_name,
            'Role': role_arn,
            'DatabaseName': self.database_name,
            'Description': f'Schema discovery for {self.s3_target_path}',
            'Targets': {
                'S3Targets': [
                    {'Path': self.s3_target_path}
                ]
            },
            'SchemaChangePolicy': {
                'UpdateBehavior': 'UPDATE_IN_DATABASE',
                'DeleteBehavior': 'LOG'
            },
            'RecrawlPolicy': {
                'RecrawlBehavior': 'CRAWL_EVERYTHING'
            },
            'Configuration': json.dumps({
                'Version': 1.0,
                'CrawlerOutput': {
                    'Partitions': {'AddOrUpdateBehavior': 'InheritFromTable'}
                },
                'Grouping': {
                    'TableGroupingPolicy': 'CombineCompatibleSchemas'
                }
            }),
        }
        if self.table_prefix:
            crawler_config['TablePrefix'] = self.table_prefix
        return crawler_config

    def create_crawler(self) -> bool:
        """
        Create and configure the Glue crawler.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info(f"Creating Glue crawler: {self.crawler_name}")

            role_arn = self.get_role_arn()
            if not role_arn:
                return False

            if not self.verify_database_exists():
                return False

            crawler_config = self.build_crawler_config(role_arn)
            crawler_config['Tags'] = {
                'Project': 'glue-lake',
                'Purpose': 'SchemaDiscovery',
                'ManagedBy': 'Automation'
            }
            self.glue_client.create_crawler(**crawler_config)

            logger.info(f"Successfully created crawler: {self.crawler_name}")
            logger.info(f"  Target: {self.s3_target_path}")
            logger.info(f"  Database: {self.database_name}")
            return True

        except ClientError as e:
            if error_code(e) == 'AlreadyExistsException':
                logger.warning(f"Crawler {self.crawler_name} already exists")
                return True
            logger.error(f"Failed to create crawler: {e}")
            return False

    def update_crawler(self) -> bool:
        """
        Update existing crawler configuration.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info(f"Updating Glue crawler: {self.crawler_name}")

            role_arn = self.get_role_arn()
            if not role_arn:
                return False

            self.glue_client.update_crawler(**self.build_crawler_config(role_arn))
            logger.info(f"Successfully updated crawler: {self.crawler_name}")
            return True

        except ClientError as e:
            if error_code(e) == 'EntityNotFoundException':
                logger.error(f"Crawler {self.crawler_name} does not exist")
            else:
                logger.error(f"Failed to update crawler: {e}")
            return False

    def get_crawler_info(self) -> Optional[Dict]:
        """
        Get information about the crawler.

        Returns:
            dict: Crawler information, None if crawler doesn't exist.
        """
        try:
            crawler = self.glue_client.get_crawler(Name=self.crawler_name)['Crawler']

            return {
                'name': crawler['Name'],
                'state': crawler['State'],
                'database': crawler.get('DatabaseName', 'N/A'),
                'role': crawler.get('Role', 'N/A'),
                'targets': crawler.get('Targets', {}),
                'last_crawl': crawler.get('LastCrawl', {}),
            }

        except ClientError as e:
            if error_code(e) == 'EntityNotFoundException':
                logger.warning(f"Crawler {self.crawler_name} does not exist")
            else:
                logger.error(f"Failed to get crawler info: {e}")
            return None

    def delete_crawler(self) -> bool:
        """
        Delete the Glue crawler.

        Returns:
            bool: True if the crawler is gone, False otherwise.
        """
        try:
            logger.info(f"Deleting Glue crawler: {self.crawler_name}")
            self.glue_client.delete_crawler(Name=self.crawler_name)
            logger.info(f"Successfully deleted crawler: {self.crawler_name}")
            return True

        except ClientError as e:
            if error_code(e) == 'EntityNotFoundException':
                logger.warning(f"Crawler {self.crawler_name} does not exist")
                return True
            logger.error(f"Failed to delete crawler: {e}")
            return False

    def get_crawler_state(self) -> Optional[str]:
        try:
            return self.glue_client.get_crawler(Name=self.crawler_name)['Crawler']['State']
        except ClientError as e:
            logger.error(f"Failed to get crawler state: {e}")
            return None

    def start_crawler(self) -> bool:
        """
        Start the Glue crawler.

        Returns:
            bool: True if started (or already running), False otherwise.
        """
        try:
            logger.info(f"Starting Glue crawler: {self.crawler_name}")

            if self.get_crawler_state() == 'RUNNING':
                logger.warning(f"Crawler {self.crawler_name} is already running")
                return True

            self.glue_client.start_crawler(Name=self.crawler_name)
            logger.info(f"Successfully started crawler: {self.crawler_name}")
            return True

        except ClientError as e:
            code = error_code(e)
            if code == 'CrawlerRunningException':
                logger.warning(f"Crawler {self.crawler_name} is already running")
                return True
            elif code == 'EntityNotFoundException':
                logger.error(f"Crawler {self.crawler_name} does not exist")
            else:
                logger.error(f"Failed to start crawler: {e}")
            return False

    def wait_for_crawler(self, timeout: int = 600, poll_interval: int = 10) -> Tuple[bool, Optional[Dict]]:
        """
        Wait for crawler to complete.

        Args:
            timeout: Maximum time to wait in seconds.
            poll_interval: Time between status checks in seconds.

        Returns:
            tuple: (success, last_crawl_info)
        """
        logger.info(f"Waiting for crawler to complete (timeout: {timeout}s)...")

        start_time = time.time()
        last_state = None

        while time.time() - start_time < timeout:
            state = self.get_crawler_state()

            if state != last_state:
                logger.info(f"Crawler state: {state}")
                last_state = state

            if state == 'READY':
                logger.info(f"Crawler completed in {time.time() - start_time:.1f} seconds")
                response = self.glue_client.get_crawler(Name=self.crawler_name)
                return True, response['Crawler'].get('LastCrawl', {})

            elif state in ('RUNNING', 'STOPPING'):
                time.sleep(poll_interval)

            else:
                logger.error(f"Unexpected crawler state: {state}")
                return False, None

        logger.error(f"Crawler did not complete within {timeout} seconds")
        return False, None

    def get_tables(self) -> List[Dict]:
        """
        Get the tables this crawler registered.

        Returns:
            list: Glue table dicts whose location lies under the crawl path.
        """
        try:
            paginator = self.glue_client.get_paginator('get_tables')
            tables = []
            for page in paginator.paginate(DatabaseName=self.database_name):
                tables.extend(page.get('TableList', []))

        except ClientError as e:
            logger.error(f"Failed to get tables: {e}")
            return []

        base = self.s3_target_path.rstrip('/')
        matched = []
        for table in tables:
            location = table.get('StorageDescriptor', {}).get('Location', '').rstrip('/')
            if location == base or location.startswith(base + '/'):
                matched.append(table)
        return matched

    def run_and_verify(self, wait: bool = True, timeout: int = 600, poll_interval: int = 10) -> bool:
        """
        Run crawler and verify it registered at least one table.

        Args:
            wait: Whether to wait for crawler to complete.
            timeout: Maximum time to wait in seconds.
            poll_interval: Time between status checks in seconds.

        Returns:
            bool: True if successful, False otherwise.
        """
        logger.info("=" * 80)
        logger.info(f"Running Glue crawler {self.crawler_name}")
        logger.info("=" * 80)

        logger.info("[STEP 1] Starting crawler")
        if not self.start_crawler():
            return False

        if not wait:
            logger.info("Crawler started. Not waiting for completion.")
            return True

        logger.info("[STEP 2] Waiting for crawler to complete")
        success, last_crawl = self.wait_for_crawler(timeout=timeout, poll_interval=poll_interval)
        if not success:
            logger.error("Crawler did not complete successfully")
            return False

        logger.info("[STEP 3] Verifying crawl status")
        status = (last_crawl or {}).get('Status')
        if status != 'SUCCEEDED':
            logger.error(f"Crawler did not succeed. Status: {status}")
            if last_crawl and 'ErrorMessage' in last_crawl:
                logger.error(f"Error message: {last_crawl['ErrorMessage']}")
            return False

        logger.info("[STEP 4] Verifying discovered tables")
        tables = self.get_tables()
        if not tables:
            logger.error(f"No tables were registered for {self.s3_target_path}")
            return False

        for table in tables:
            summary = describe_table(table)
            logger.info(
                f"  Table {summary['name']} ({summary['classification']}): "
                f"{len(summary['columns'])} columns, {len(summary['partition_keys'])} partition keys"
            )
            for col in summary['columns']:
                logger.info(f"    - {col['Name']}: {col['Type']}")

        logger.info("SUCCESS: Crawler execution and verification completed!")
        return True
