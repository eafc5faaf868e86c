"""CLI entrypoint for shc2es ingestion"""

import argparse
import logging
import signal
import sys
from typing import Optional

from ingest_logging import setup_logging

from . import __version__
from .bulk_import import import_files
from .config import IngestConfig, load_env
from .dashboard_client import KibanaClient
from .errors import ConfigValidationError, Shc2EsError, StoreConnectionError
from .provisioning import setup
from .registry import load_registry, registry_path
from .store import ElasticsearchStore
from .watch import LiveTailer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shc2es-ingest",
        description="Load smart home controller events into Elasticsearch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create ingest pipeline, index template and Kibana dashboard
  shc2es-ingest --setup

  # Import all historical event files
  shc2es-ingest

  # Import a single day
  shc2es-ingest --pattern "events-2025-12-10.ndjson"

  # Tail today's file and index new events as they arrive
  shc2es-ingest --watch

Environment Variables:
  ES_NODE                Elasticsearch URL (required)
  ES_PASSWORD            Elasticsearch password (required)
  ES_USER                Elasticsearch user (default: elastic)
  ES_CA_CERT             Custom CA certificate file
  ES_TLS_VERIFY          Verify TLS certificates (default: true)
  ES_INDEX_PREFIX        Index prefix (default: smart-home-events)
  KIBANA_NODE            Kibana URL (required for --setup)
  SHC2ES_DATA_DIR        Event file directory (default: ~/.shc2es/data)
  SHC2ES_LOG_DIR         Log directory (default: ~/.shc2es/logs)
  LOG_LEVEL              Console log level (default: info)
        """,
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--setup",
        action="store_true",
        help="Create index template, ingest pipeline and import the dashboard",
    )
    mode.add_argument(
        "--watch",
        action="store_true",
        help="Tail today's event file and index new events in real time",
    )
    mode.add_argument(
        "--pattern",
        help="Glob of files to import (default: all events-*.ndjson in the data dir)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def run_watch(tailer: LiveTailer) -> None:
    """Run the tailer until SIGINT/SIGTERM, then shut it down cleanly."""

    def handle_signal(signum, frame):
        logger.info("Shutting down watch mode")
        tailer.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    tailer.start()
    while tailer.is_alive():
        tailer.join(timeout=0.5)


def run(args: argparse.Namespace, config: IngestConfig, store=None, kibana=None) -> int:
    """Execute the requested mode. Returns the process exit code."""
    store = store or ElasticsearchStore(
        config.es_node,
        username=config.es_user,
        password=config.es_password,
        verify=config.tls_verify,
    )
    if kibana is None and args.setup and config.kibana_node:
        kibana = KibanaClient(
            config.kibana_node,
            username=config.es_user,
            password=config.es_password,
            verify=config.tls_verify,
        )

    try:
        store.ping()

        if args.setup:
            result = setup(store, config.es_index_prefix, kibana=kibana)
            for step in result.steps:
                status = "skipped" if step.skipped else ("ok" if step.ok else "FAILED")
                logger.info(f"Setup step {step.name}: {status} {step.detail}")
            return 0

        registry = load_registry(registry_path(config.data_dir))

        if args.watch:
            tailer = LiveTailer(
                store,
                config.data_dir,
                config.es_index_prefix,
                registry=registry,
                poll_interval=config.watch_poll_interval,
                max_in_flight=config.max_in_flight,
            )
            run_watch(tailer)
            return 0

        summary = import_files(
            store, config.data_dir, config.es_index_prefix, registry=registry, pattern=args.pattern
        )
        logger.info(
            f"Summary: {len(summary.files)} files, {summary.parsed} events parsed, "
            f"{summary.indexed} indexed, {summary.failed} failed, "
            f"{summary.parse_errors} lines skipped"
        )
        return 0
    except StoreConnectionError as e:
        logger.critical(f"Fatal: {e}")
        return 1
    except Shc2EsError as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        store.close()
        if kibana is not None:
            kibana.close()


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entrypoint"""
    args = build_parser().parse_args(argv)

    load_env()
    try:
        config = IngestConfig.from_env(require_kibana=args.setup)
    except ConfigValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(
        "ingest",
        log_dir=str(config.log_dir),
        log_level="debug" if args.verbose else config.log_level,
    )

    logger.info("=" * 60)
    logger.info("shc2es ingest starting")
    logger.info(f"Elasticsearch: {config.es_node}")
    logger.info(f"Index prefix: {config.es_index_prefix}")
    logger.info(f"Data directory: {config.data_dir}")
    logger.info("=" * 60)

    return run(args, config)


if __name__ == "__main__":
    sys.exit(main())
