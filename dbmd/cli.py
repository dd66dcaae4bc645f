"""CLI entrypoint: ``dbmd-fetch [options] <conn-props-file> <database-type> <output-file>``."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from dbmd.config import load_connection_properties
from dbmd.exceptions import DbmdError
from dbmd.models import DateMapping, ExtractionSettings
from dbmd.schema_pipeline.orchestrator import DbmdFetchOrchestrator
from dbmd.schema_pipeline.relation_filter import (
    DEFAULT_EXCLUDE_REGEX,
    DEFAULT_INCLUDE_REGEX,
    decode_base64_pattern,
)
from dbmd.schema_pipeline.writer import OutputFormat
from dbmd.utils.logger import set_level, setup_logging

logger = setup_logging(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbmd-fetch",
        description="Fetch database metadata (relations, fields, keys) into a JSON or YAML file",
    )
    parser.add_argument("conn_props_file", help="Connection properties file with db.url, db.username, db.password")
    parser.add_argument("database_type", help="Database type, e.g. pg, mysql, ora; selects a predefined query")
    parser.add_argument("output_file", help="Output file, or '-' for stdout")

    parser.add_argument(
        "--use-generic-md",
        action="store_true",
        help="Always use generic introspection, even when a predefined query exists",
    )
    include = parser.add_mutually_exclusive_group()
    include.add_argument("--include-regex", help=f"Relations to include, full match on schema.name (default '{DEFAULT_INCLUDE_REGEX}')")
    include.add_argument("--include-regex-base64", help="Base64 encoded form of --include-regex")
    exclude = parser.add_mutually_exclusive_group()
    exclude.add_argument("--exclude-regex", help=f"Relations to exclude, full match on schema.name (default '{DEFAULT_EXCLUDE_REGEX}')")
    exclude.add_argument("--exclude-regex-base64", help="Base64 encoded form of --exclude-regex")

    parser.add_argument("--schema", help="Restrict generic introspection to one schema (overrides db.schema)")
    parser.add_argument("--no-views", action="store_true", help="Do not include views")
    parser.add_argument("--no-foreign-keys", action="store_true", help="Do not fetch foreign keys")
    parser.add_argument(
        "--date-mapping",
        choices=[mapping.value for mapping in DateMapping],
        default=DateMapping.DRIVER_REPORTED.value,
        help="How DATE columns reported as DATE/TIMESTAMP are typed",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=[fmt.value for fmt in OutputFormat],
        default=OutputFormat.JSON.value,
        help="Output format (default json)",
    )
    parser.add_argument("--log-level", help="Logging level, overrides DBMD_LOG_LEVEL")
    return parser


def _resolve_pattern(plain: Optional[str], encoded: Optional[str], default: str, option: str) -> str:
    if encoded is not None:
        return decode_base64_pattern(encoded, option=option)
    return default if plain is None else plain


def run(args: argparse.Namespace) -> None:
    include_regex = _resolve_pattern(args.include_regex, args.include_regex_base64, DEFAULT_INCLUDE_REGEX, "--include-regex-base64")
    exclude_regex = _resolve_pattern(args.exclude_regex, args.exclude_regex_base64, DEFAULT_EXCLUDE_REGEX, "--exclude-regex-base64")

    props = load_connection_properties(args.conn_props_file)
    settings = ExtractionSettings(
        schema=args.schema,
        include_views=not args.no_views,
        include_foreign_keys=not args.no_foreign_keys,
        date_mapping=DateMapping(args.date_mapping),
    )
    orchestrator = DbmdFetchOrchestrator(
        props,
        args.database_type,
        args.output_file,
        include_regex=include_regex,
        exclude_regex=exclude_regex,
        settings=settings,
        use_generic_md=args.use_generic_md,
        output_format=OutputFormat(args.output_format),
    )
    orchestrator.run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        args = build_parser().parse_args(argv)
    except SystemExit as exc:
        return 0 if exc.code in (0, None) else 1
    if args.log_level:
        set_level(args.log_level)
    try:
        run(args)
    except DbmdError as exc:
        logger.error("%s", exc)
        return 1
    except Exception:
        logger.exception("Unexpected failure while fetching database metadata")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
