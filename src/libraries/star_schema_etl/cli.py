"""
Command line entry point: run the star schema ETL against Delta tables.
"""

from datetime import date
from typing import List, Optional
import argparse
import json
import logging

from pyspark.sql import SparkSession

from .common.config import load_config
from .common.exceptions import ETLError
from .common.utils import configure_logging
from .pipeline.etl_runner import ETLRunner
from .sources.spark_source import SparkSourceReader
from .storage.delta import DeltaWarehouse

logger = logging.getLogger(__name__)


def build_spark_session(app_name: str = "star-schema-etl", warehouse_dir: Optional[str] = None) -> SparkSession:
    """Spark session with the Delta extension and catalog enabled."""
    builder = SparkSession.builder \
        .appName(app_name) \
        .config("spark.sql.extensions", "io.delta.sql.DeltaSparkSessionExtension") \
        .config("spark.sql.catalog.spark_catalog", "org.apache.spark.sql.delta.catalog.DeltaCatalog")
    if warehouse_dir:
        builder = builder.config("spark.sql.warehouse.dir", warehouse_dir)
    return builder.getOrCreate()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load the retail star schema from the operational database")
    parser.add_argument("--config", required=True, help="Path to the JSON ETL configuration")
    parser.add_argument("--as-of", dest="as_of", type=date.fromisoformat, default=None,
                        help="Business date of the run (YYYY-MM-DD, defaults to today)")
    parser.add_argument("--log-level", dest="log_level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--create-tables", dest="create_tables", action="store_true",
                        help="Create missing dimension, fact and date tables before loading")
    parser.add_argument("--warehouse-dir", dest="warehouse_dir", default=None,
                        help="Spark SQL warehouse directory")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config(args.config)
    except ETLError as e:
        logger.error(f"Cannot start run: {e.message}")
        print(json.dumps({"status": "ABORTED", "failed_step": "configuration", "error": e.message}))
        return 1

    spark = build_spark_session(warehouse_dir=args.warehouse_dir)
    warehouse = DeltaWarehouse(spark, config)
    if args.create_tables:
        warehouse.create_tables_if_not_exist()

    report = ETLRunner(config, warehouse, SparkSourceReader(spark)).run_full_etl(args.as_of)
    print(json.dumps(report.to_dict(), indent=2, default=str))
    return 0 if report.is_success else 1


if __name__ == "__main__":
    raise SystemExit(main())
