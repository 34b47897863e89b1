"""
Create and run the AWS Glue ETL job that turns cataloged flat files into Parquet.

The job:
- Type: Spark ETL (glueetl), Python 3
- Glue version, worker type and worker count from config
- Job bookmarks enabled so re-runs only pick up new files
- Script uploaded to S3 from the packaged scripts/csv_to_parquet.py
"""

import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
from botocore.exceptions import ClientError

from ..naming import normalize_prefix
from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, error_code
from .mappings import ColumnMapping, mappings_to_argument

logger = get_logger(__name__)

DEFAULT_SCRIPT_PATH = Path(__file__).parent / "scripts" / "csv_to_parquet.py"

SUCCEEDED = 'SUCCEEDED'
FAILED_STATES = ('FAILED', 'ERROR', 'TIMEOUT', 'STOPPED', 'EXPIRED')


def job_arguments(
    source_database: str,
    source_table: str,
    target_path: str,
    mappings: List[ColumnMapping],
    partition_keys: Iterable[str] = (),
    compression: str = 'snappy'
) -> Dict[str, str]:
    """
    Build the job arguments the script reads with getResolvedOptions.

    Raises:
        ValueError: If a partition key is not one of the mapped target columns.
    """
    partition_keys = list(partition_keys)
    targets = {m.target for m in mappings}
    missing = [k for k in partition_keys if k not in targets]
    if missing:
        raise ValueError(f"Partition key(s) not in mapped columns: {', '.join(missing)}")

    arguments = {
        '--source_database': source_database,
        '--source_table': source_table,
        '--target_path': target_path,
        '--column_mappings': mappings_to_argument(mappings),
        '--compression': compression,
    }
    # getResolvedOptions rejects empty values; the script reads a missing key as unpartitioned
    if partition_keys:
        arguments['--partition_keys'] = ','.join(partition_keys)
    return arguments


class GlueJobManager:
    """
    Manages creation, updates and runs of the Glue ETL job.
    """

    def __init__(
        self,
        job_name: str,
        role_name: str,
        scripts_bucket: str,
        scripts_prefix: str = "scripts/glue/",
        region: str = 'us-east-1',
        glue_version: str = '4.0',
        worker_type: str = 'G.1X',
        number_of_workers: int = 2
    ):
        """
        Initialize Glue Job Manager.

        Args:
            job_name: Name for the Glue ETL job.
            role_name: IAM role name for Glue job execution.
            scripts_bucket: Bucket holding the job script; the role must be able to read it.
            scripts_prefix: Folder for the script inside that bucket.
            region: AWS region.
            glue_version: Glue runtime version.
            worker_type: Glue worker type.
            number_of_workers: Number of workers.
        """
        self.job_name = job_name
        self.role_name = role_name
        self.scripts_bucket = scripts_bucket
        self.scripts_prefix = normalize_prefix(scripts_prefix)
        self.region = region
        self.glue_version = glue_version
        self.worker_type = worker_type
        self.number_of_workers = number_of_workers

        self.glue_client = get_boto3_client('glue', region=region)
        self.s3_client = get_boto3_client('s3', region=region)
        self.iam_client = get_boto3_client('iam', region=region)

        logger.info(f"Initialized GlueJobManager for job: {self.job_name}")

    def get_role_arn(self) -> str:
        """
        Get ARN of the IAM role for Glue.

        Raises:
            ValueError: If the role doesn't exist.
            ClientError: On any other IAM failure.
        """
        try:
            return self.iam_client.get_role(RoleName=self.role_name)['Role']['Arn']
        except ClientError as e:
            if error_code(e) == 'NoSuchEntity':
                logger.error(f"IAM role '{self.role_name}' does not exist")
                raise ValueError(f"IAM role '{self.role_name}' not found") from e
            raise

    def upload_script(self, local_path: Optional[str] = None) -> str:
        """
        Upload the ETL script to S3.

        Args:
            local_path: Script to upload; defaults to the packaged csv_to_parquet.py.

        Returns:
            str: S3 path to the uploaded script.
        """
        path = Path(local_path) if local_path else DEFAULT_SCRIPT_PATH
        script_key = f"{self.scripts_prefix}{path.name}"
        s3_path = f"s3://{self.scripts_bucket}/{script_key}"

        logger.info(f"Uploading script from {path} to {s3_path}")
        with open(path, 'rb') as f:
            self.s3_client.put_object(
                Bucket=self.scripts_bucket,
                Key=script_key,
                Body=f,
                ServerSideEncryption='AES256'
            )
        logger.info("Script uploaded successfully")
        return s3_path

    def build_job_config(self, role_arn: str, script_location: str, arguments: Dict[str, str]) -> Dict:
        """Job definition shared by create and update (without Name and Tags)."""
        default_arguments = {
            '--job-language': 'python',
            '--job-bookmark-option': 'job-bookmark-enable',
            '--enable-metrics': 'true',
            '--enable-continuous-cloudwatch-log': 'true',
            '--enable-glue-datacatalog': 'true',
            '--TempDir': f's3://{self.scripts_bucket}/temp/glue/',
        }
        default_arguments.update(arguments)

        return {
            'Description': 'Convert cataloged flat files to Parquet in the target bucket',
            'Role': role_arn,
            'ExecutionProperty': {
                'MaxConcurrentRuns': 1
            },
            'Command': {
                'Name': 'glueetl',
                'ScriptLocation': script_location,
                'PythonVersion': '3'
            },
            'DefaultArguments': default_arguments,
            'MaxRetries': 0,
            'Timeout': 60,
            'GlueVersion': self.glue_version,
            'NumberOfWorkers': self.number_of_workers,
            'WorkerType': self.worker_type,
        }

    def create_job(self, script_location: str, arguments: Dict[str, str]) -> bool:
        """
        Create the Glue ETL job.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info(f"Creating Glue ETL job: {self.job_name}")

            job_config = self.build_job_config(self.get_role_arn(), script_location, arguments)
            job_config['Name'] = self.job_name
            job_config['Tags'] = {
                'Project': 'glue-lake',
                'Purpose': 'FlatFileToParquet',
                'ManagedBy': 'Automation'
            }

            response = self.glue_client.create_job(**job_config)
            logger.info(f"Successfully created job: {response['Name']}")
            return True

        except ClientError as e:
            if error_code(e) == 'AlreadyExistsException':
                logger.warning(f"Job '{self.job_name}' already exists")
                return True
            logger.error(f"Failed to create job: {e}")
            return False
        except ValueError as e:
            logger.error(f"Cannot create job: {e}")
            return False

    def update_job(self, script_location: str, arguments: Dict[str, str]) -> bool:
        """
        Update existing Glue ETL job.

        Returns:
            bool: True if successful, False otherwise.
        """
        try:
            logger.info(f"Updating Glue ETL job: {self.job_name}")
            job_update = self.build_job_config(self.get_role_arn(), script_location, arguments)
            self.glue_client.update_job(JobName=self.job_name, JobUpdate=job_update)
            logger.info(f"Successfully updated job: {self.job_name}")
            return True

        except ClientError as e:
            logger.error(f"Failed to update job: {e}")
            return False
        except ValueError as e:
            logger.error(f"Cannot update job: {e}")
            return False

    def get_job_info(self) -> Optional[Dict]:
        """
        Get information about the job.

        Returns:
            dict: Job information, None if job doesn't exist.
        """
        try:
            job = self.glue_client.get_job(JobName=self.job_name)['Job']

            return {
                'name': job['Name'],
                'role': job['Role'],
                'glue_version': job.get('GlueVersion', 'N/A'),
                'worker_type': job.get('WorkerType', 'N/A'),
                'number_of_workers': job.get('NumberOfWorkers', 'N/A'),
                'script_location': job.get('Command', {}).get('ScriptLocation', 'N/A'),
                'job_bookmark': job.get('DefaultArguments', {}).get('--job-bookmark-option', 'disabled')
            }

        except ClientError as e:
            if error_code(e) == 'EntityNotFoundException':
                logger.warning(f"Job '{self.job_name}' does not exist")
            else:
                logger.error(f"Failed to get job info: {e}")
            return None

    def delete_job(self) -> bool:
        # delete_job succeeds for unknown names, so no not-found branch
        try:
            self.glue_client.delete_job(JobName=self.job_name)
            logger.info(f"Deleted job: {self.job_name}")
            return True
        except ClientError as e:
            logger.error(f"Failed to delete job: {e}")
            return False

    def setup_job(
        self,
        arguments: Dict[str, str],
        update_if_exists: bool = True,
        script_path: Optional[str] = None
    ) -> bool:
        """
        Upload the script, then create or update the job.

        Args:
            arguments: Job arguments, see job_arguments().
            update_if_exists: Update job if it already exists.
            script_path: Local script to upload instead of the packaged one.

        Returns:
            bool: True if successful, False otherwise.
        """
        logger.info("=" * 80)
        logger.info("Starting Glue ETL Job Setup")
        logger.info("=" * 80)

        job_exists = self.get_job_info() is not None

        logger.info("[STEP 1] Uploading ETL script to S3")
        try:
            script_location = self.upload_script(script_path)
        except (OSError, ClientError) as e:
            logger.error(f"Failed to upload script: {e}")
            return False

        if job_exists and update_if_exists:
            logger.info("[STEP 2] Job exists - updating job configuration")
            success = self.update_job(script_location, arguments)
        elif job_exists:
            logger.info("[STEP 2] Job exists - skipping creation")
            success = True
        else:
            logger.info("[STEP 2] Creating new Glue ETL job")
            success = self.create_job(script_location, arguments)

        if success:
            logger.info("SUCCESS: Glue ETL job setup completed!")
        else:
            logger.error("FAILED: Could not create or update job")
        return success

    def start_job_run(self, arguments: Optional[Dict[str, str]] = None) -> Optional[str]:
        """
        Start a job run.

        Args:
            arguments: Optional job arguments to override defaults.

        Returns:
            str: Job run ID if successful, None otherwise.
        """
        try:
            logger.info(f"Starting job run for: {self.job_name}")

            params = {'JobName': self.job_name}
            if arguments:
                params['Arguments'] = arguments

            job_run_id = self.glue_client.start_job_run(**params)['JobRunId']
            logger.info(f"Job run started successfully. Run ID: {job_run_id}")
            return job_run_id

        except ClientError as e:
            logger.error(f"Failed to start job run: {e}")
            return None

    def wait_for_job_run(
        self,
        run_id: str,
        timeout: int = 3600,
        poll_interval: int = 30
    ) -> Tuple[bool, Optional[Dict]]:
        """
        Poll a job run until it finishes.

        Returns:
            tuple: (succeeded, job_run dict or None on timeout / lookup failure)
        """
        logger.info(f"Waiting for job run {run_id} (timeout: {timeout}s)...")

        start_time = time.time()
        last_state = None

        while time.time() - start_time < timeout:
            try:
                job_run = self.glue_client.get_job_run(JobName=self.job_name, RunId=run_id)['JobRun']
            except ClientError as e:
                logger.error(f"Failed to get job run: {e}")
                return False, None

            state = job_run['JobRunState']
            if state != last_state:
                logger.info(f"Job run state: {state}")
                last_state = state

            if state == SUCCEEDED:
                logger.info(f"Job run succeeded in {job_run.get('ExecutionTime', 0)} seconds")
                return True, job_run
            if state in FAILED_STATES:
                logger.error(f"Job run ended in {state}: {job_run.get('ErrorMessage', 'no error message')}")
                return False, job_run

            time.sleep(poll_interval)

        logger.error(f"Job run did not finish within {timeout} seconds")
        return False, None
