"""One-time setup of Elasticsearch and Kibana before data flows.

Creates:
- an ingest pipeline that stamps ``event.ingested`` on every document
- an index template with field mappings for ``<prefix>-*`` daily indices
- the prefixed Kibana dashboard (optional, when Kibana is configured)

All three calls replace existing definitions, so setup can be re-run safely.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .errors import DashboardImportError, StoreConnectionError, StoreRequestError
from .saved_objects import prefix_dashboard_ndjson

logger = logging.getLogger(__name__)

DEFAULT_DASHBOARD_FILE = Path(__file__).parent / "dashboards" / "smart-home.ndjson"


def pipeline_name(index_prefix: str) -> str:
    return f"{index_prefix}-pipeline"


def template_name(index_prefix: str) -> str:
    return f"{index_prefix}-template"


def index_pattern(index_prefix: str) -> str:
    return f"{index_prefix}-*"


def pipeline_body() -> dict:
    return {
        "description": "Add event.ingested timestamp to smart home events",
        "processors": [
            {"set": {"field": "event.ingested", "value": "{{{_ingest.timestamp}}}"}},
        ],
    }


def index_template_body(pattern: str, pipeline: str) -> dict:
    keyword = {"type": "keyword"}
    return {
        "index_patterns": [pattern],
        "priority": 100,
        "template": {
            "settings": {"index": {"default_pipeline": pipeline}},
            "mappings": {
                "properties": {
                    "@timestamp": {"type": "date"},
                    "event": {"properties": {"ingested": {"type": "date"}}},
                    "@type": keyword,
                    "id": keyword,
                    "deviceId": keyword,
                    "path": keyword,
                    "device": {"properties": {"name": keyword, "type": keyword}},
                    "room": {"properties": {"id": keyword, "name": keyword}},
                    "metric": {
                        "properties": {"name": keyword, "value": {"type": "float"}},
                    },
                }
            },
        },
    }


@dataclass
class StepResult:
    name: str
    ok: bool
    skipped: bool = False
    detail: str = ""


@dataclass
class ProvisioningResult:
    steps: list[StepResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Setup succeeds when the store steps succeed; the dashboard step is optional."""
        return all(step.ok for step in self.steps if step.name != "dashboard")

    def step(self, name: str) -> Optional[StepResult]:
        for step in self.steps:
            if step.name == name:
                return step
        return None


def _with_retries(
    name: str,
    action: Callable[[], object],
    retries: int,
    backoff_seconds: float,
    sleep_fn: Callable[[float], None],
):
    attempt = 1
    while True:
        try:
            return action()
        except StoreConnectionError as e:
            if attempt >= retries:
                raise
            delay = backoff_seconds * attempt
            logger.warning(
                f"{name} failed (attempt {attempt}/{retries}): {e}. Retrying in {delay}s..."
            )
            sleep_fn(delay)
            attempt += 1


def create_ingest_pipeline(store, name: str) -> None:
    logger.info(f"Creating ingest pipeline '{name}'")
    store.put_pipeline(name, pipeline_body())
    logger.info(f"Ingest pipeline '{name}' created successfully")


def create_index_template(store, name: str, pattern: str, pipeline: str) -> None:
    logger.info(f"Creating index template '{name}' for pattern '{pattern}'")
    store.put_index_template(name, index_template_body(pattern, pipeline))
    logger.info(
        f"Index template '{name}' created successfully. "
        f"New indices matching '{pattern}' will automatically use this template."
    )


def import_dashboard(kibana, dashboard_file: Path, prefix: str) -> dict:
    """Prefix the dashboard template and import it with overwrite."""
    logger.info(f"Importing Kibana dashboard from {dashboard_file} with prefix '{prefix}'")
    content = Path(dashboard_file).read_text(encoding="utf-8")
    result = kibana.import_objects(prefix_dashboard_ndjson(content, prefix), overwrite=True)
    logger.info(
        f"Dashboard imported successfully: {result.get('successCount', 0)} objects "
        f"with prefix '{prefix}'"
    )
    return result


def setup(
    store,
    index_prefix: str,
    kibana=None,
    dashboard_file: Optional[Path] = None,
    retries: int = 3,
    backoff_seconds: float = 2.0,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> ProvisioningResult:
    """
    Provision the store (and optionally Kibana) for an index prefix.

    Args:
        store: Document store client
        index_prefix: Index name prefix, also used as the dashboard prefix
        kibana: KibanaClient, or None to skip the dashboard import
        dashboard_file: Saved-object template (defaults to the bundled one)
        retries: Attempts per step on connection failures
        backoff_seconds: Linear backoff between attempts

    Returns:
        ProvisioningResult with one entry per step

    Raises:
        StoreConnectionError: If the store stays unreachable for a store step
        StoreRequestError: If the store rejects the pipeline or template
    """
    logger.info("Setting up Elasticsearch ingest pipeline and index template")
    result = ProvisioningResult()
    pipeline = pipeline_name(index_prefix)
    template = template_name(index_prefix)
    pattern = index_pattern(index_prefix)

    _with_retries(
        "Ingest pipeline setup",
        lambda: create_ingest_pipeline(store, pipeline),
        retries,
        backoff_seconds,
        sleep_fn,
    )
    result.steps.append(StepResult(name="pipeline", ok=True, detail=pipeline))

    _with_retries(
        "Index template setup",
        lambda: create_index_template(store, template, pattern, pipeline),
        retries,
        backoff_seconds,
        sleep_fn,
    )
    result.steps.append(StepResult(name="template", ok=True, detail=template))

    result.steps.append(
        _dashboard_step(kibana, dashboard_file, index_prefix, retries, backoff_seconds, sleep_fn)
    )
    return result


def _dashboard_step(kibana, dashboard_file, prefix, retries, backoff_seconds, sleep_fn) -> StepResult:
    if kibana is None:
        logger.info(
            "KIBANA_NODE not configured, skipping dashboard import. "
            "Set KIBANA_NODE environment variable to enable automatic dashboard setup."
        )
        return StepResult(name="dashboard", ok=True, skipped=True, detail="kibana not configured")

    dashboard_file = Path(dashboard_file or DEFAULT_DASHBOARD_FILE)
    if not dashboard_file.exists():
        logger.info(f"Dashboard file not found at {dashboard_file}, skipping import")
        return StepResult(name="dashboard", ok=True, skipped=True, detail="no dashboard file")

    try:
        response = _with_retries(
            "Dashboard import",
            lambda: import_dashboard(kibana, dashboard_file, prefix),
            retries,
            backoff_seconds,
            sleep_fn,
        )
    except (StoreConnectionError, StoreRequestError, DashboardImportError, OSError, ValueError) as e:
        logger.error(f"Dashboard import failed: {e}")
        return StepResult(name="dashboard", ok=False, detail=str(e))

    return StepResult(
        name="dashboard", ok=True, detail=f"{response.get('successCount', 0)} objects imported"
    )
