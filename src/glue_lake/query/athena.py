"""
Run Amazon Athena queries against the cataloged tables.

Athena reads the files in S3 directly using the Glue catalog metadata and
writes each result set as CSV under the results bucket. Results are
returned as pandas DataFrames.
"""

import re
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pandas as pd
from botocore.exceptions import ClientError

from ..naming import s3_uri
from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client

logger = get_logger(__name__)

_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_]+")

TERMINAL_STATES = ('SUCCEEDED', 'FAILED', 'CANCELLED')


def quote_identifier(name: str) -> str:
    """Validate and double-quote a database or table name."""
    if not isinstance(name, str) or not _IDENTIFIER_RE.fullmatch(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


@dataclass
class QueryResult:
    execution_id: Optional[str]
    state: str
    reason: Optional[str] = None
    data: Optional[pd.DataFrame] = None

    @property
    def succeeded(self) -> bool:
        return self.state == 'SUCCEEDED'

    @property
    def is_empty(self) -> bool:
        return self.succeeded and (self.data is None or self.data.empty)


class AthenaQueryRunner:
    """Executes SQL in Athena and collects the results."""

    def __init__(
        self,
        database: str,
        results_bucket: str,
        results_prefix: str = "athena-results/",
        workgroup: str = "primary",
        region: str = 'us-east-1',
        timeout: int = 300,
        poll_interval: int = 2
    ):
        """
        Initialize Athena Query Runner.

        Args:
            database: Glue catalog database used as the query context.
            results_bucket: Bucket receiving query results.
            results_prefix: Folder inside the results bucket.
            workgroup: Athena workgroup.
            region: AWS region.
            timeout: Seconds to wait for a query before giving up.
            poll_interval: Seconds between status checks.
        """
        self.database = database
        self.results_bucket = results_bucket
        self.results_prefix = results_prefix
        self.workgroup = workgroup
        self.region = region
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.athena_client = get_boto3_client('athena', region=region)

        logger.info(f"Initialized AthenaQueryRunner for database: {self.database}")

    @property
    def output_location(self) -> str:
        return s3_uri(self.results_bucket, self.results_prefix)

    def start_query(self, sql: str) -> Optional[str]:
        """
        Submit a query.

        Returns:
            str: Query execution ID, None if submission failed.
        """
        try:
            response = self.athena_client.start_query_execution(
                QueryString=sql,
                QueryExecutionContext={'Database': self.database},
                ResultConfiguration={'OutputLocation': self.output_location},
                WorkGroup=self.workgroup
            )
            execution_id = response['QueryExecutionId']
            logger.info(f"Query execution ID: {execution_id}")
            return execution_id

        except ClientError as e:
            logger.error(f"Failed to start Athena query: {e}")
            return None

    def wait_for_query(
        self,
        execution_id: str,
        timeout: Optional[int] = None,
        poll_interval: Optional[int] = None
    ) -> Tuple[str, Optional[str]]:
        """
        Poll until the query reaches a terminal state.

        Returns:
            tuple: (state, state change reason). State is 'TIMEOUT' when the
            query is still running after the timeout; the query is then stopped.
        """
        timeout = self.timeout if timeout is None else timeout
        poll_interval = self.poll_interval if poll_interval is None else poll_interval
        start_time = time.time()

        while time.time() - start_time < timeout:
            try:
                execution = self.athena_client.get_query_execution(
                    QueryExecutionId=execution_id
                )['QueryExecution']
            except ClientError as e:
                logger.error(f"Failed to get query execution: {e}")
                return 'FAILED', str(e)

            status = execution['Status']
            state = status['State']
            if state in TERMINAL_STATES:
                return state, status.get('StateChangeReason')

            time.sleep(poll_interval)

        logger.warning(f"Query {execution_id} still running after {timeout} seconds; stopping it")
        try:
            self.athena_client.stop_query_execution(QueryExecutionId=execution_id)
        except ClientError as e:
            logger.error(f"Failed to stop query {execution_id}: {e}")
        return 'TIMEOUT', f"Query did not finish within {timeout} seconds"

    def fetch_results(self, execution_id: str, max_rows: Optional[int] = None) -> pd.DataFrame:
        """
        Page through the result set of a finished query.

        The first row of the first page is the header row.

        Returns:
            DataFrame: One string column per result column; missing values are None.
        """
        paginator = self.athena_client.get_paginator('get_query_results')
        header: Optional[List[str]] = None
        rows: List[List[Optional[str]]] = []

        for page in paginator.paginate(QueryExecutionId=execution_id):
            for row in page['ResultSet']['Rows']:
                values = [cell.get('VarCharValue') for cell in row['Data']]
                if header is None:
                    header = values
                    continue
                if max_rows is not None and len(rows) >= max_rows:
                    return pd.DataFrame(rows, columns=header, dtype=object)
                rows.append(values)

        return pd.DataFrame(rows, columns=header or [], dtype=object)

    def run_query(self, sql: str, max_rows: Optional[int] = None) -> QueryResult:
        """
        Submit a query, wait for it and collect the results.

        Returns:
            QueryResult: data is set only when the query succeeded.
        """
        logger.info(f"Executing Athena query: {sql}")

        execution_id = self.start_query(sql)
        if execution_id is None:
            return QueryResult(execution_id=None, state='FAILED', reason='Query submission failed')

        state, reason = self.wait_for_query(execution_id)
        if state != 'SUCCEEDED':
            logger.error(f"Query {state.lower()}: {reason or 'Unknown error'}")
            return QueryResult(execution_id=execution_id, state=state, reason=reason)

        try:
            data = self.fetch_results(execution_id, max_rows=max_rows)
        except ClientError as e:
            logger.error(f"Failed to fetch query results: {e}")
            return QueryResult(execution_id=execution_id, state='FAILED', reason=str(e))

        result = QueryResult(execution_id=execution_id, state=state, reason=reason, data=data)
        if result.is_empty:
            logger.warning("Query succeeded but returned no rows")
        else:
            logger.info(f"Query returned {len(data)} row(s)")
        return result

    def preview_table(self, table: str, limit: int = 10) -> QueryResult:
        if limit < 1:
            raise ValueError("limit must be positive")
        sql = f"SELECT * FROM {quote_identifier(self.database)}.{quote_identifier(table)} LIMIT {int(limit)}"
        return self.run_query(sql)

    def count_rows(self, table: str) -> Optional[int]:
        """
        Count the rows of a table.

        Returns:
            int: Row count, None if the query failed.
        """
        sql = f"SELECT COUNT(*) AS row_count FROM {quote_identifier(self.database)}.{quote_identifier(table)}"
        result = self.run_query(sql)
        if not result.succeeded or result.data is None or result.data.empty:
            return None
        return int(result.data.iloc[0, 0])
