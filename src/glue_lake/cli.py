"""Command line entry point: glue-lake <command>."""

import argparse
import json
import sys
from typing import Dict, List, Optional

from botocore.exceptions import ClientError

from .config import Config
from .utils.logger import configure_logging, get_logger
from .iam.policy import build_pipeline_policy, load_policy_file, validate_policy_document, write_policy_file
from .storage.layout import check_source_layout
from .pipeline import PipelineOrchestrator

logger = get_logger(__name__)


def _pairs(values: Optional[List[str]], option: str) -> Dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    pairs = {}
    for value in values or []:
        key, sep, val = value.partition('=')
        if not sep or not key or not val:
            raise ValueError(f"{option} expects KEY=VALUE, got {value!r}")
        pairs[key] = val
    return pairs


def build_config(args: argparse.Namespace) -> Config:
    cfg = Config()
    if args.region:
        cfg.aws.region = args.region
    if args.source_bucket:
        cfg.s3.source_bucket = args.source_bucket
    if args.target_bucket:
        cfg.s3.target_bucket = args.target_bucket
    if args.results_bucket:
        cfg.s3.results_bucket = args.results_bucket
    return cfg


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='glue-lake',
        description='Move flat files from a raw S3 bucket to a queryable Parquet table with Glue and Athena'
    )
    parser.add_argument('--region', type=str, help='AWS region (default: AWS_REGION or us-east-1)')
    parser.add_argument(
        '--log-level', type=str.upper, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Log level (default: LOG_LEVEL or INFO)'
    )
    parser.add_argument('--source-bucket', type=str, help='Bucket holding the raw flat files')
    parser.add_argument('--target-bucket', type=str, help='Bucket receiving the Parquet output')
    parser.add_argument('--results-bucket', type=str, help='Bucket receiving Athena query results')

    commands = parser.add_subparsers(dest='command', required=True)

    policy = commands.add_parser('policy', help='Render or validate the bucket permission document')
    policy_commands = policy.add_subparsers(dest='policy_command', required=True)
    render = policy_commands.add_parser('render', help='Print or write the permission document')
    render.add_argument('--output', type=str, help='Write to this file instead of stdout')
    validate = policy_commands.add_parser('validate', help='Validate a permission document file')
    validate.add_argument('file', type=str, help='Policy JSON file')
    validate.add_argument('--source', type=str, help='Expected source bucket (default: --source-bucket)')
    validate.add_argument('--target', type=str, help='Expected target bucket (default: --target-bucket)')
    validate.add_argument('--results', type=str, help='Expected results bucket (default: --results-bucket)')

    layout = commands.add_parser('check-layout', help='Check the source bucket for root-level files')
    layout.add_argument('--strict', action='store_true', help='Exit 1 on any layout error')

    commands.add_parser('setup', help='Create buckets, the Glue role, the database and crawlers')

    ingest = commands.add_parser('ingest', help='Upload files under the source prefix')
    ingest.add_argument('paths', nargs='+', help='Files or directories')
    ingest.add_argument('--pattern', type=str, default='*.csv', help='Glob for directories (default: *.csv)')

    crawl = commands.add_parser('crawl', help='Run a crawler and list the tables it registered')
    crawl.add_argument('which', choices=['source', 'target'])
    crawl.add_argument('--strict-layout', action='store_true', help='Fail on source layout errors')

    transform = commands.add_parser('transform', help='Run the CSV to Parquet job')
    _add_mapping_options(transform)
    transform.add_argument('--table', type=str, required=True, help='Source catalog table')

    query = commands.add_parser('query', help='Query the catalog with Athena')
    target = query.add_mutually_exclusive_group(required=True)
    target.add_argument('--sql', type=str, help='SQL to run')
    target.add_argument('--table', type=str, help='Table to preview')
    query.add_argument('--limit', type=int, default=10, help='Preview row limit (default: 10)')

    run = commands.add_parser('run', help='Run the whole pipeline')
    run.add_argument('paths', nargs='*', help='Files or directories to ingest first')
    run.add_argument('--strict-layout', action='store_true', help='Fail on source layout errors')
    _add_mapping_options(run)

    teardown = commands.add_parser('teardown', help='Delete the pipeline resources')
    teardown.add_argument('--delete-buckets', action='store_true', help='Also empty and delete the buckets')

    return parser


def _add_mapping_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--rename', action='append', metavar='OLD=NEW', help='Rename a column')
    parser.add_argument('--cast', action='append', metavar='COLUMN=TYPE', help='Cast a column')
    parser.add_argument('--drop', action='append', metavar='COLUMN', help='Drop a column')
    parser.add_argument('--partition-key', action='append', metavar='COLUMN', help='Partition the output')


def _policy(args: argparse.Namespace, cfg: Config) -> int:
    s3 = cfg.s3
    if args.policy_command == 'render':
        document = build_pipeline_policy(s3.source_bucket, s3.target_bucket, s3.results_bucket)
        if args.output:
            write_policy_file(document, args.output)
        else:
            print(document.to_json())
        return 0

    named = [
        args.source or s3.source_bucket,
        args.target or s3.target_bucket,
        args.results or s3.results_bucket,
    ]
    known = [bucket for bucket in named if bucket]
    if len(known) < len(named):
        logger.warning(f"Only {len(known)} of 3 bucket names known; other buckets' resources are not checked")

    with open(args.file, 'r', encoding='utf-8') as f:
        problems = validate_policy_document(
            f.read(),
            expected_buckets=known or None,
            complete=len(known) == len(named)
        )
    if problems:
        for problem in problems:
            print(f"✗ {problem}")
        return 1

    document = load_policy_file(args.file)
    print(f"✓ {args.file} is valid ({len(document.statements)} statements)")
    return 0


def run(argv: Optional[List[str]] = None) -> int:
    """Run one command; returns the process exit code."""
    args = build_parser().parse_args(argv)
    if args.log_level:
        configure_logging(level=args.log_level)
    cfg = build_config(args)

    if args.command == 'policy':
        return _policy(args, cfg)

    if args.command == 'check-layout':
        try:
            issues = check_source_layout(cfg.s3.source_bucket, cfg.s3.source_prefix, region=cfg.aws.region)
        except ClientError as e:
            print(f"✗ Cannot list s3://{cfg.s3.source_bucket}/{cfg.s3.source_prefix}: {e}")
            return 1
        has_errors = any(issue.is_error for issue in issues)
        return 1 if args.strict and has_errors else 0

    orchestrator = PipelineOrchestrator(cfg)

    if args.command == 'setup':
        ok = orchestrator.setup_storage() and orchestrator.setup_permissions() and orchestrator.setup_catalog()
        return 0 if ok else 1

    if args.command == 'ingest':
        keys = orchestrator.ingest(args.paths, pattern=args.pattern)
        for key in keys:
            print(f"s3://{cfg.s3.source_bucket}/{key}")
        return 0 if keys else 1

    if args.command == 'crawl':
        if args.which == 'source':
            table = orchestrator.crawl_source(strict_layout=args.strict_layout)
        else:
            table = orchestrator.crawl_target()
        if table is None:
            return 1
        print(table)
        return 0

    if args.command == 'transform':
        ok = orchestrator.transform(
            args.table,
            renames=_pairs(args.rename, '--rename'),
            casts=_pairs(args.cast, '--cast'),
            drops=args.drop,
            partition_keys=args.partition_key or ()
        )
        return 0 if ok else 1

    if args.command == 'query':
        result = orchestrator.query(sql=args.sql, table=args.table, limit=args.limit)
        if not result.succeeded:
            return 1
        print(result.data.to_string(index=False) if not result.data.empty else "(no rows)")
        return 0

    if args.command == 'run':
        report = orchestrator.run_all(
            paths=args.paths,
            renames=_pairs(args.rename, '--rename'),
            casts=_pairs(args.cast, '--cast'),
            drops=args.drop,
            partition_keys=args.partition_key or (),
            strict_layout=args.strict_layout
        )
        print(json.dumps(
            {
                'succeeded': report.succeeded,
                'source_table': report.source_table,
                'target_table': report.target_table,
                'steps': [{'name': s.name, 'success': s.success, 'detail': s.detail} for s in report.steps],
            },
            indent=2
        ))
        return 0 if report.succeeded else 1

    if args.command == 'teardown':
        return 0 if orchestrator.teardown(delete_buckets=args.delete_buckets) else 1

    return 2


def main():
    """Main entry point for the glue-lake command."""
    try:
        sys.exit(run())
    except Exception as e:
        logger.error(f"glue-lake failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
