"""Tests for Elasticsearch/Kibana provisioning"""

from unittest.mock import Mock

import pytest

from conftest import FakeStore
from shc2es.errors import DashboardImportError, StoreConnectionError, StoreRequestError
from shc2es.provisioning import (
    index_template_body,
    pipeline_body,
    setup,
)


class FlakyStore(FakeStore):
    """Fails the first ``failures`` pipeline calls with a connection error."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def put_pipeline(self, name, body):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise StoreConnectionError("connection refused")
        return super().put_pipeline(name, body)


def test_pipeline_sets_ingest_timestamp():
    processor = pipeline_body()["processors"][0]["set"]
    assert processor == {"field": "event.ingested", "value": "{{{_ingest.timestamp}}}"}


def test_template_body():
    body = index_template_body("smart-home-events-*", "smart-home-events-pipeline")
    assert body["index_patterns"] == ["smart-home-events-*"]
    assert body["priority"] == 100
    assert body["template"]["settings"]["index"]["default_pipeline"] == "smart-home-events-pipeline"
    properties = body["template"]["mappings"]["properties"]
    assert properties["@timestamp"] == {"type": "date"}
    assert properties["metric"]["properties"]["value"] == {"type": "float"}


def test_setup_without_kibana(fake_store):
    result = setup(fake_store, "smart-home-events")

    assert result.ok
    assert "smart-home-events-pipeline" in fake_store.pipelines
    assert "smart-home-events-template" in fake_store.templates
    assert result.step("dashboard").skipped


def test_setup_is_repeatable(fake_store):
    setup(fake_store, "smart-home-events")
    setup(fake_store, "smart-home-events")
    assert list(fake_store.pipelines) == ["smart-home-events-pipeline"]
    assert list(fake_store.templates) == ["smart-home-events-template"]


def test_setup_imports_prefixed_dashboard(fake_store):
    kibana = Mock()
    kibana.import_objects.return_value = {"success": True, "successCount": 4}

    result = setup(fake_store, "dev", kibana=kibana)

    assert result.ok
    assert result.step("dashboard").ok
    assert not result.step("dashboard").skipped
    ndjson = kibana.import_objects.call_args[0][0]
    assert '"id": "dev-smart-home-dashboard"' in ndjson
    assert kibana.import_objects.call_args[1] == {"overwrite": True}


def test_missing_dashboard_file_is_skipped(fake_store, tmp_path):
    kibana = Mock()
    result = setup(fake_store, "dev", kibana=kibana, dashboard_file=tmp_path / "none.ndjson")

    assert result.step("dashboard").skipped
    kibana.import_objects.assert_not_called()


@pytest.mark.parametrize(
    "error",
    [
        DashboardImportError("2 errors"),
        StoreRequestError("forbidden", status_code=403),
    ],
)
def test_dashboard_failure_is_not_fatal(fake_store, error):
    kibana = Mock()
    kibana.import_objects.side_effect = error

    result = setup(fake_store, "dev", kibana=kibana, sleep_fn=lambda _: None)

    assert result.ok
    assert not result.step("dashboard").ok
    assert result.step("dashboard").detail == str(error)


def test_connection_errors_are_retried():
    store = FlakyStore(failures=2)
    delays = []

    result = setup(store, "dev", retries=3, backoff_seconds=1.5, sleep_fn=delays.append)

    assert result.ok
    assert store.attempts == 3
    assert delays == [1.5, 3.0]


def test_retries_are_exhausted():
    store = FlakyStore(failures=5)
    delays = []

    with pytest.raises(StoreConnectionError):
        setup(store, "dev", retries=3, sleep_fn=delays.append)
    assert store.attempts == 3
    assert len(delays) == 2


def test_request_errors_are_not_retried(fake_store):
    fake_store.put_index_template = Mock(side_effect=StoreRequestError("bad", status_code=400))
    delays = []

    with pytest.raises(StoreRequestError):
        setup(fake_store, "dev", sleep_fn=delays.append)
    assert delays == []
    fake_store.put_index_template.assert_called_once()
