"""Unit tests for the Glue ETL job."""

import json
import pytest
from unittest.mock import MagicMock, patch

from glue_lake.etl.job import DEFAULT_SCRIPT_PATH, GlueJobManager, job_arguments
from glue_lake.etl.mappings import build_column_mappings

ROLE_ARN = 'arn:aws:iam::123456789012:role/AWSGlueServiceRole-test'


@pytest.fixture
def clients():
    glue, s3, iam = MagicMock(), MagicMock(), MagicMock()
    iam.get_role.return_value = {'Role': {'Arn': ROLE_ARN}}

    def factory(service, region=None):
        return {'glue': glue, 's3': s3, 'iam': iam}[service]

    with patch('glue_lake.etl.job.get_boto3_client', side_effect=factory):
        yield glue, s3, iam


@pytest.fixture
def manager(clients):
    return GlueJobManager(
        job_name='job-test',
        role_name='AWSGlueServiceRole-test',
        scripts_bucket='acme-curated',
    )


@pytest.fixture
def arguments(source_columns):
    mappings = build_column_mappings(source_columns)
    return job_arguments(
        'test_catalog', 'raw', 's3://acme-curated/curated/', mappings, partition_keys=['order_date']
    )


class TestJobArguments:
    """Test job argument construction."""

    def test_arguments(self, arguments):
        assert arguments['--source_database'] == 'test_catalog'
        assert arguments['--source_table'] == 'raw'
        assert arguments['--target_path'] == 's3://acme-curated/curated/'
        assert arguments['--partition_keys'] == 'order_date'
        assert arguments['--compression'] == 'snappy'
        assert len(json.loads(arguments['--column_mappings'])) == 4

    def test_unpartitioned_omits_partition_keys(self, source_columns):
        arguments = job_arguments('db', 'raw', 's3://b/curated/', build_column_mappings(source_columns))
        assert '--partition_keys' not in arguments

    def test_partition_key_must_be_mapped(self, source_columns):
        mappings = build_column_mappings(source_columns, drops=['order date'])
        with pytest.raises(ValueError, match='order_date'):
            job_arguments('db', 'raw', 's3://b/curated/', mappings, partition_keys=['order_date'])


class TestGlueJobManager:
    """Test job setup and runs."""

    def test_packaged_script_exists(self):
        assert DEFAULT_SCRIPT_PATH.is_file()

    def test_build_job_config(self, manager, arguments):
        config = manager.build_job_config(ROLE_ARN, 's3://acme-curated/scripts/glue/csv_to_parquet.py', arguments)

        assert config['Command']['Name'] == 'glueetl'
        assert config['GlueVersion'] == '4.0'
        assert config['WorkerType'] == 'G.1X'
        assert config['NumberOfWorkers'] == 2
        defaults = config['DefaultArguments']
        assert defaults['--job-bookmark-option'] == 'job-bookmark-enable'
        assert defaults['--TempDir'] == 's3://acme-curated/temp/glue/'
        assert defaults['--source_table'] == 'raw'

    def test_setup_job_creates_and_uploads(self, manager, clients, arguments, client_error):
        glue, s3, _ = clients
        glue.get_job.side_effect = client_error('EntityNotFoundException')

        assert manager.setup_job(arguments) is True

        put = s3.put_object.call_args.kwargs
        assert put['Bucket'] == 'acme-curated'
        assert put['Key'] == 'scripts/glue/csv_to_parquet.py'
        create = glue.create_job.call_args.kwargs
        assert create['Name'] == 'job-test'
        assert create['Role'] == ROLE_ARN
        assert create['Command']['ScriptLocation'] == 's3://acme-curated/scripts/glue/csv_to_parquet.py'
        glue.update_job.assert_not_called()

    def test_setup_job_updates_existing(self, manager, clients, arguments):
        glue, _, _ = clients
        glue.get_job.return_value = {'Job': {'Name': 'job-test', 'Role': ROLE_ARN}}

        assert manager.setup_job(arguments) is True

        glue.update_job.assert_called_once()
        assert glue.update_job.call_args.kwargs['JobName'] == 'job-test'
        glue.create_job.assert_not_called()

    def test_setup_job_without_role(self, manager, clients, arguments, client_error):
        glue, _, iam = clients
        glue.get_job.side_effect = client_error('EntityNotFoundException')
        iam.get_role.side_effect = client_error('NoSuchEntity')

        assert manager.setup_job(arguments) is False
        glue.create_job.assert_not_called()

    def test_setup_job_missing_script(self, manager, clients, arguments, tmp_path):
        glue, s3, _ = clients

        assert manager.setup_job(arguments, script_path=str(tmp_path / 'missing.py')) is False
        s3.put_object.assert_not_called()
        glue.create_job.assert_not_called()

    def test_start_job_run(self, manager, clients):
        glue, _, _ = clients
        glue.start_job_run.return_value = {'JobRunId': 'jr_1'}

        assert manager.start_job_run() == 'jr_1'
        glue.start_job_run.assert_called_once_with(JobName='job-test')

    @patch('glue_lake.etl.job.time.sleep')
    def test_wait_for_job_run_succeeds(self, mock_sleep, manager, clients):
        glue, _, _ = clients
        glue.get_job_run.side_effect = [
            {'JobRun': {'JobRunState': 'STARTING'}},
            {'JobRun': {'JobRunState': 'RUNNING'}},
            {'JobRun': {'JobRunState': 'SUCCEEDED', 'ExecutionTime': 95}},
        ]

        success, job_run = manager.wait_for_job_run('jr_1', poll_interval=1)

        assert success is True
        assert job_run['ExecutionTime'] == 95
        assert mock_sleep.call_count == 2

    @pytest.mark.parametrize('state', ['FAILED', 'ERROR', 'TIMEOUT', 'STOPPED'])
    def test_wait_for_job_run_fails(self, manager, clients, state):
        glue, _, _ = clients
        glue.get_job_run.return_value = {'JobRun': {'JobRunState': state, 'ErrorMessage': 'boom'}}

        success, job_run = manager.wait_for_job_run('jr_1')

        assert success is False
        assert job_run['JobRunState'] == state

    def test_wait_for_job_run_timeout(self, manager):
        assert manager.wait_for_job_run('jr_1', timeout=0) == (False, None)
