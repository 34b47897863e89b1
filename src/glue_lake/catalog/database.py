"""
Create the AWS Glue Data Catalog database the crawlers register tables into.
"""

from typing import Dict, List, Optional
from botocore.exceptions import ClientError

from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, error_code

logger = get_logger(__name__)


class GlueDatabaseManager:
    """Manages creation and inspection of a Glue catalog database."""

    def __init__(
        self,
        database_name: str,
        description: str = "Raw and curated tables produced by glue-lake",
        location_uri: Optional[str] = None,
        region: str = 'us-east-1'
    ):
        """
        Initialize Glue Database Manager.

        Args:
            database_name: Name for the Glue catalog database.
            description: Description for the database.
            location_uri: Optional default S3 location for the database.
            region: AWS region.
        """
        self.database_name = database_name
        self.description = description
        self.location_uri = location_uri
        self.region = region
        self.glue_client = get_boto3_client('glue', region=region)

        logger.info(f"Initialized GlueDatabaseManager for database: {self.database_name}")

    def create_database(self) -> bool:
        """
        Create Glue catalog database.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info(f"Creating Glue catalog database: {self.database_name}")

            database_input = {
                'Name': self.database_name,
                'Description': self.description,
                'Parameters': {
                    'project': 'glue-lake',
                    'managed_by': 'automation'
                }
            }
            if self.location_uri:
                database_input['LocationUri'] = self.location_uri

            self.glue_client.create_database(DatabaseInput=database_input)

            logger.info(f"Successfully created database: {self.database_name}")
            return True

        except ClientError as e:
            if error_code(e) == 'AlreadyExistsException':
                logger.warning(f"Database {self.database_name} already exists")
                return True
            logger.error(f"Failed to create database: {e}")
            return False

    def database_exists(self) -> bool:
        try:
            self.glue_client.get_database(Name=self.database_name)
            return True
        except ClientError as e:
            if error_code(e) != 'EntityNotFoundException':
                logger.error(f"Failed to verify database: {e}")
            return False

    def list_tables(self) -> List[Dict]:
        """
        List every table in the database.

        Returns:
            list: Glue table dicts, empty on failure.
        """
        try:
            paginator = self.glue_client.get_paginator('get_tables')
            tables = []
            for page in paginator.paginate(DatabaseName=self.database_name):
                tables.extend(page.get('TableList', []))
            return tables

        except ClientError as e:
            logger.error(f"Failed to list tables in {self.database_name}: {e}")
            return []

    def get_table(self, table_name: str) -> Optional[Dict]:
        """
        Get one table definition.

        Returns:
            dict: Glue table, None if it doesn't exist.
        """
        try:
            return self.glue_client.get_table(DatabaseName=self.database_name, Name=table_name)['Table']
        except ClientError as e:
            if error_code(e) == 'EntityNotFoundException':
                logger.warning(f"Table {self.database_name}.{table_name} does not exist")
            else:
                logger.error(f"Failed to get table {table_name}: {e}")
            return None

    def get_database_info(self) -> Optional[Dict]:
        """
        Get information about the database.

        Returns:
            dict: Database information, None if database doesn't exist.
        """
        try:
            database = self.glue_client.get_database(Name=self.database_name)['Database']
        except ClientError as e:
            if error_code(e) == 'EntityNotFoundException':
                logger.warning(f"Database {self.database_name} does not exist")
            else:
                logger.error(f"Failed to get database info: {e}")
            return None

        tables = self.list_tables()
        create_time = database.get('CreateTime')
        return {
            'name': database['Name'],
            'description': database.get('Description', 'N/A'),
            'location_uri': database.get('LocationUri', 'N/A'),
            'create_time': create_time.isoformat() if hasattr(create_time, 'isoformat') else 'N/A',
            'parameters': database.get('Parameters', {}),
            'table_count': len(tables),
            'tables': [t['Name'] for t in tables]
        }

    def delete_database(self) -> bool:
        """
        Delete the database and every table registered in it.

        Returns:
            bool: True if the database is gone, False otherwise.
        """
        try:
            logger.info(f"Deleting Glue database: {self.database_name}")
            self.glue_client.delete_database(Name=self.database_name)
            logger.info(f"Successfully deleted database: {self.database_name}")
            return True

        except ClientError as e:
            if error_code(e) == 'EntityNotFoundException':
                logger.warning(f"Database {self.database_name} does not exist")
                return True
            logger.error(f"Failed to delete database: {e}")
            return False
