"""
End-to-end orchestration of the raw-to-curated pipeline.

Steps, in the order an operator would click through them in the console:
1. Create the source, target and query-results buckets
2. Create the Glue service role with the three-statement bucket policy
3. Create the catalog database and the source/target crawlers
4. Upload flat files under the source prefix
5. Crawl the source folder
6. Run the ETL job (catalog table -> column mappings -> Parquet)
7. Crawl the target folder
8. Query the curated table in Athena
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from botocore.exceptions import ClientError

from .config import Config, config as default_config
from .naming import s3_uri, validate_bucket_name
from .utils.logger import get_logger
from .utils.aws_helpers import check_s3_bucket_exists
from .iam.role import GlueRoleManager
from .storage.buckets import BucketManager
from .storage.layout import LayoutError, check_source_layout, explain_empty_results
from .catalog.database import GlueDatabaseManager
from .catalog.crawler import GlueCrawlerManager, describe_table
from .etl.job import GlueJobManager, job_arguments
from .etl.mappings import build_column_mappings
from .query.athena import AthenaQueryRunner, QueryResult

logger = get_logger(__name__)


@dataclass
class StepResult:
    name: str
    success: bool
    detail: str = ""


@dataclass
class PipelineReport:
    steps: List[StepResult] = field(default_factory=list)
    source_table: Optional[str] = None
    target_table: Optional[str] = None
    query_result: Optional[QueryResult] = None

    @property
    def succeeded(self) -> bool:
        return bool(self.steps) and all(step.success for step in self.steps)

    def record(self, name: str, success: bool, detail: str = "") -> bool:
        self.steps.append(StepResult(name, success, detail))
        return success


class PipelineOrchestrator:
    """Drives S3, IAM, Glue and Athena through the whole pipeline."""

    def __init__(self, cfg: Optional[Config] = None):
        """
        Initialize the orchestrator.

        Args:
            cfg: Configuration; defaults to the module-level config.

        Raises:
            ValueError: If any bucket name is missing or invalid, or two are equal.
        """
        self.config = cfg or default_config
        s3 = self.config.s3

        for bucket in s3.bucket_names:
            validate_bucket_name(bucket)
        if len(set(s3.bucket_names)) != 3:
            raise ValueError("Source, target and results buckets must be distinct")

        self.region = self.config.aws.region
        self.source_path = s3_uri(s3.source_bucket, s3.source_prefix)
        self.target_path = s3_uri(s3.target_bucket, s3.target_prefix)

        logger.info(f"Initialized PipelineOrchestrator: {self.source_path} -> {self.target_path}")

    def _database(self) -> GlueDatabaseManager:
        return GlueDatabaseManager(self.config.glue.catalog_database, region=self.region)

    def _role(self) -> GlueRoleManager:
        s3 = self.config.s3
        return GlueRoleManager(
            role_name=self.config.glue.role_name,
            source_bucket=s3.source_bucket,
            target_bucket=s3.target_bucket,
            results_bucket=s3.results_bucket,
            region=self.region
        )

    def _crawler(self, which: str) -> GlueCrawlerManager:
        glue = self.config.glue
        if which == 'source':
            name, path = glue.source_crawler, self.source_path
        elif which == 'target':
            name, path = glue.target_crawler, self.target_path
        else:
            raise ValueError(f"Unknown crawler: {which!r}")
        return GlueCrawlerManager(
            crawler_name=name,
            database_name=glue.catalog_database,
            role_name=glue.role_name,
            s3_target_path=path,
            region=self.region
        )

    def _job(self) -> GlueJobManager:
        glue = self.config.glue
        return GlueJobManager(
            job_name=glue.job_name,
            role_name=glue.role_name,
            scripts_bucket=self.config.s3.target_bucket,
            scripts_prefix=self.config.s3.scripts_prefix,
            region=self.region,
            glue_version=glue.glue_version,
            worker_type=glue.worker_type,
            number_of_workers=glue.number_of_workers
        )

    def _athena(self) -> AthenaQueryRunner:
        athena = self.config.athena
        return AthenaQueryRunner(
            database=self.config.glue.catalog_database,
            results_bucket=self.config.s3.results_bucket,
            results_prefix=athena.results_prefix,
            workgroup=athena.workgroup,
            region=self.region,
            timeout=athena.query_timeout,
            poll_interval=athena.poll_interval
        )

    def setup_storage(self) -> bool:
        """Create the three buckets with their folders."""
        s3 = self.config.s3
        buckets = [
            (s3.source_bucket, 'Source', [s3.source_prefix]),
            (s3.target_bucket, 'Target', [s3.target_prefix, s3.scripts_prefix]),
            (s3.results_bucket, 'QueryResults', [self.config.athena.results_prefix]),
        ]

        all_successful = True
        for bucket, purpose, prefixes in buckets:
            if not BucketManager(bucket, region=self.region).setup_bucket(purpose, prefixes):
                all_successful = False
        return all_successful

    def setup_permissions(self) -> bool:
        return self._role().setup_role()

    def setup_catalog(self) -> bool:
        """Create the catalog database and both crawlers."""
        if not self._database().create_database():
            return False
        source_ok = self._crawler('source').create_crawler()
        target_ok = self._crawler('target').create_crawler()
        return source_ok and target_ok

    def ingest(self, paths: Iterable[str], pattern: str = "*.csv") -> List[str]:
        """
        Upload files, or every matching file in a directory, under the source prefix.

        Returns:
            list: Object keys written, empty if the source bucket is missing.
        """
        s3 = self.config.s3
        if not check_s3_bucket_exists(s3.source_bucket, region=self.region):
            logger.error(f"Source bucket {s3.source_bucket} is not reachable; run setup first")
            return []

        bucket = BucketManager(s3.source_bucket, region=self.region)

        keys: List[str] = []
        for path in paths:
            if Path(path).is_dir():
                keys.extend(bucket.upload_directory(path, s3.source_prefix, pattern=pattern))
            else:
                keys.append(bucket.upload_file(path, s3.source_prefix))

        logger.info(f"Uploaded {len(keys)} file(s) under {self.source_path}")
        return keys

    def _crawl(self, which: str) -> Optional[str]:
        crawler = self._crawler(which)
        if not crawler.run_and_verify():
            return None

        tables = crawler.get_tables()
        if not tables:
            return None
        if len(tables) > 1:
            names = ', '.join(t['Name'] for t in tables)
            logger.warning(f"The {which} crawler registered several tables ({names}); using the first")
        return tables[0]['Name']

    def crawl_source(self, strict_layout: bool = False) -> Optional[str]:
        """
        Check the source layout, then crawl it.

        Returns:
            str: Name of the source table, None on failure.

        Raises:
            LayoutError: In strict mode, when the layout check finds errors.
        """
        s3 = self.config.s3
        check_source_layout(s3.source_bucket, s3.source_prefix, strict=strict_layout, region=self.region)
        return self._crawl('source')

    def crawl_target(self) -> Optional[str]:
        return self._crawl('target')

    def transform(
        self,
        source_table: str,
        renames: Optional[Dict[str, str]] = None,
        casts: Optional[Dict[str, str]] = None,
        drops: Optional[Iterable[str]] = None,
        partition_keys: Iterable[str] = (),
        timeout: int = 3600
    ) -> bool:
        """
        Build column mappings from the source table, then set up and run the job.

        Returns:
            bool: True if the job run succeeded.
        """
        table = self._database().get_table(source_table)
        if table is None:
            return False

        summary = describe_table(table)
        mappings = build_column_mappings(
            summary['columns'] + summary['partition_keys'], renames=renames, casts=casts, drops=drops
        )
        arguments = job_arguments(
            source_database=self.config.glue.catalog_database,
            source_table=source_table,
            target_path=self.target_path,
            mappings=mappings,
            partition_keys=partition_keys
        )

        job = self._job()
        if not job.setup_job(arguments):
            return False

        run_id = job.start_job_run()
        if run_id is None:
            return False

        success, _ = job.wait_for_job_run(run_id, timeout=timeout)
        return success

    def query(self, sql: Optional[str] = None, table: Optional[str] = None, limit: int = 10) -> QueryResult:
        """
        Run a query (or preview a table) and diagnose empty results.

        Raises:
            ValueError: If neither sql nor table is given.
        """
        if sql is None and table is None:
            raise ValueError("Pass either sql or table")

        runner = self._athena()
        result = runner.run_query(sql) if sql is not None else runner.preview_table(table, limit=limit)

        if result.is_empty:
            s3 = self.config.s3
            hint = explain_empty_results(s3.source_bucket, s3.source_prefix, region=self.region)
            if hint:
                logger.warning(f"Empty result explained by source layout: {hint}")
        return result

    def run_all(
        self,
        paths: Iterable[str] = (),
        renames: Optional[Dict[str, str]] = None,
        casts: Optional[Dict[str, str]] = None,
        drops: Optional[Iterable[str]] = None,
        partition_keys: Iterable[str] = (),
        strict_layout: bool = False
    ) -> PipelineReport:
        """
        Run every step, stopping at the first failure.

        Layout, validation, AWS and file errors raised by a step are recorded
        as that step's failure instead of propagating.

        Returns:
            PipelineReport: Per-step results plus table names and the query result.
        """
        report = PipelineReport()
        paths = list(paths)

        logger.info("=" * 80)
        logger.info("Running raw-to-curated pipeline")
        logger.info("=" * 80)

        setup_steps: List[Tuple[str, Callable[[], bool]]] = [
            ("Set up storage", self.setup_storage),
            ("Set up permissions", self.setup_permissions),
            ("Set up catalog", self.setup_catalog),
        ]
        for name, func in setup_steps:
            if not self._step(report, name, lambda func=func: (func(), "")):
                return self._finish(report)

        if paths:
            def ingest_step():
                keys = self.ingest(paths)
                return bool(keys), f"{len(keys)} file(s)"

            if not self._step(report, "Ingest files", ingest_step):
                return self._finish(report)

        def crawl_source_step():
            report.source_table = self.crawl_source(strict_layout=strict_layout)
            return report.source_table is not None, report.source_table or ""

        if not self._step(report, "Crawl source", crawl_source_step):
            return self._finish(report)

        def transform_step():
            ok = self.transform(
                report.source_table,
                renames=renames,
                casts=casts,
                drops=drops,
                partition_keys=partition_keys
            )
            return ok, ""

        if not self._step(report, "Transform", transform_step):
            return self._finish(report)

        def crawl_target_step():
            report.target_table = self.crawl_target()
            return report.target_table is not None, report.target_table or ""

        if not self._step(report, "Crawl target", crawl_target_step):
            return self._finish(report)

        def query_step():
            report.query_result = self.query(table=report.target_table)
            return report.query_result.succeeded, report.query_result.reason or report.query_result.state

        self._step(report, "Query target", query_step)
        return self._finish(report)

    def _step(
        self,
        report: PipelineReport,
        name: str,
        func: Callable[[], Tuple[bool, str]]
    ) -> bool:
        """Run one step and record it; errors raised by the step count as failures."""
        logger.info(f"[STEP] {name}")
        try:
            success, detail = func()
        except (LayoutError, ValueError, ClientError, OSError) as e:
            logger.error(f"{name} failed: {e}")
            success, detail = False, str(e)
        return report.record(name, success, detail)

    def _finish(self, report: PipelineReport) -> PipelineReport:
        for step in report.steps:
            marker = "✓" if step.success else "✗"
            logger.info(f"  {marker} {step.name}{': ' + step.detail if step.detail else ''}")
        if report.succeeded:
            logger.info("SUCCESS: Pipeline completed")
        else:
            logger.error("FAILED: Pipeline stopped early")
        return report

    def teardown(self, delete_buckets: bool = False) -> bool:
        """
        Remove the job, crawlers, database and role, and optionally the buckets.

        Returns:
            bool: True if every deletion succeeded.
        """
        logger.info("=" * 80)
        logger.info("Tearing down pipeline resources")
        logger.info("=" * 80)

        results = [
            self._job().delete_job(),
            self._crawler('source').delete_crawler(),
            self._crawler('target').delete_crawler(),
            self._database().delete_database(),
            self._role().delete_role(),
        ]

        if delete_buckets:
            for bucket in self.config.s3.bucket_names:
                results.append(BucketManager(bucket, region=self.region).delete_bucket(force=True))

        return all(results)
