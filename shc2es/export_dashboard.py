"""Export Kibana dashboards into the bundled saved-object template."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Optional

from ingest_logging import setup_logging

from .config import DashboardConfig, load_env
from .dashboard_client import KibanaClient
from .errors import ConfigValidationError, Shc2EsError
from .provisioning import DEFAULT_DASHBOARD_FILE
from .saved_objects import is_export_metadata, parse_ndjson

logger = logging.getLogger(__name__)


def export_dashboard(
    kibana: KibanaClient,
    output_file: Path,
    dashboard_id: Optional[str] = None,
) -> dict:
    """
    Export one dashboard (or all dashboards) with every referenced object.

    Args:
        kibana: Kibana client
        output_file: Where to write the NDJSON export
        dashboard_id: Dashboard to export; all dashboards when None

    Returns:
        Count of exported objects per saved-object type
    """
    logger.info(f"Exporting dashboard(s) from Kibana: {dashboard_id or 'all'}")
    if dashboard_id:
        ndjson = kibana.export(objects=[("dashboard", dashboard_id)], include_references_deep=True)
    else:
        ndjson = kibana.export(object_type="dashboard", include_references_deep=True)

    objects = parse_ndjson(ndjson)
    metadata = objects[-1] if objects and is_export_metadata(objects[-1]) else {}
    type_counts = Counter(obj.get("type") for obj in objects if not is_export_metadata(obj))

    logger.info(
        f"Export summary: {dict(type_counts)}, exportedCount={metadata.get('exportedCount')}"
    )
    if metadata.get("missingRefCount", 0) > 0:
        logger.warning(
            f"Some references could not be resolved: {metadata.get('missingReferences')}"
        )

    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(ndjson, encoding="utf-8")
    logger.info(f"Dashboard exported successfully to {output_file}")
    return dict(type_counts)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="shc2es-export-dashboard",
        description="Export a Kibana dashboard with all referenced objects",
    )
    parser.add_argument("dashboard_id", nargs="?", help="Dashboard ID (default: all dashboards)")
    parser.add_argument(
        "--output",
        default=str(DEFAULT_DASHBOARD_FILE),
        help=f"Output file (default: {DEFAULT_DASHBOARD_FILE})",
    )
    args = parser.parse_args(argv)

    load_env()
    try:
        config = DashboardConfig.from_env()
    except ConfigValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging("export-dashboard", log_dir=str(config.log_dir), log_level=config.log_level)

    kibana = KibanaClient(
        config.kibana_node,
        username=config.es_user,
        password=config.es_password,
        verify=config.tls_verify,
    )
    try:
        export_dashboard(kibana, Path(args.output), args.dashboard_id)
    except (Shc2EsError, json.JSONDecodeError, OSError) as e:
        logger.critical(f"Export failed: {e}")
        return 1
    finally:
        kibana.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
