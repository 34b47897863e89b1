"""
AWS Glue ETL Job: cataloged flat files to Parquet

This job:
1. Reads the source table the source crawler registered in the Data Catalog
2. Renames and casts columns with ApplyMapping (--column_mappings)
3. Drops fields that are null in every record
4. Writes Parquet to the target path, optionally partitioned

Runs inside the Glue Spark runtime; it is uploaded to S3, never imported.
"""

import sys
import json
from awsglue.transforms import ApplyMapping, DropNullFields
from awsglue.utils import getResolvedOptions
from pyspark.context import SparkContext
from awsglue.context import GlueContext
from awsglue.job import Job

args = getResolvedOptions(sys.argv, [
    'JOB_NAME',
    'source_database',
    'source_table',
    'target_path',
    'column_mappings',
    'compression',
])
if '--partition_keys' in sys.argv:
    args.update(getResolvedOptions(sys.argv, ['partition_keys']))

sc = SparkContext()
glueContext = GlueContext(sc)
job = Job(glueContext)
job.init(args['JOB_NAME'], args)

print(f"Starting job: {args['JOB_NAME']}")
print(f"Source table: {args['source_database']}.{args['source_table']}")
print(f"Target path: {args['target_path']}")

source = glueContext.create_dynamic_frame.from_catalog(
    database=args['source_database'],
    table_name=args['source_table'],
    transformation_ctx='source',
)
print(f"Source record count: {source.count()}")

mappings = [
    (m['source'], m['source_type'], m['target'], m['target_type'])
    for m in json.loads(args['column_mappings'])
]
mapped = ApplyMapping.apply(frame=source, mappings=mappings, transformation_ctx='mapped')
cleaned = DropNullFields.apply(frame=mapped, transformation_ctx='cleaned')

partition_keys = [k for k in args.get('partition_keys', '').split(',') if k]
print(f"Writing Parquet ({args['compression']}) partitioned by {partition_keys or 'nothing'}")

glueContext.write_dynamic_frame.from_options(
    frame=cleaned,
    connection_type='s3',
    connection_options={
        'path': args['target_path'],
        'partitionKeys': partition_keys,
    },
    format='glueparquet',
    format_options={'compression': args['compression']},
    transformation_ctx='target',
)

job.commit()
print("Job completed successfully!")
