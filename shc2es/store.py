"""Elasticsearch REST client for the ingestion pipeline."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union
from urllib.parse import quote

import requests

from .errors import StoreConnectionError, StoreRequestError

logger = logging.getLogger(__name__)

ERROR_SAMPLE_SIZE = 3


@dataclass
class BulkItem:
    """One document of a bulk upsert."""

    index: str
    doc_id: str
    document: dict


@dataclass
class BulkResult:
    """Per-item outcome of a bulk upsert."""

    submitted: int = 0
    indexed: int = 0
    errors: list[dict] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def error_sample(self, size: int = ERROR_SAMPLE_SIZE) -> list[dict]:
        return self.errors[:size]


class ElasticsearchStore:
    """Client for the subset of the Elasticsearch API used for ingestion."""

    def __init__(
        self,
        base_url: str,
        username: str = "elastic",
        password: str = "",
        verify: Union[bool, str] = True,
        timeout: int = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = (username, password)
        self.session.verify = verify
        self.session.headers.update({"User-Agent": "shc2es/1.0"})

    def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[dict] = None,
        data: Optional[bytes] = None,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(
                method,
                url,
                json=json_body,
                data=data,
                headers=headers,
                params=params,
                timeout=self.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise StoreConnectionError(
                f"Failed to connect to Elasticsearch at {self.base_url}: {e}"
            ) from e

        if response.status_code >= 400:
            raise StoreRequestError(
                f"Elasticsearch {method} {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.json() if response.text else {}

    def ping(self) -> dict:
        """Check connectivity; raises StoreConnectionError if unreachable."""
        try:
            info = self._request("GET", "/")
        except StoreRequestError as e:
            raise StoreConnectionError(
                f"Failed to connect to Elasticsearch at {self.base_url}: {e}"
            ) from e
        logger.info(f"Connected to Elasticsearch at {self.base_url}")
        return info

    def bulk_upsert(self, items: Iterable[BulkItem], refresh: bool = True) -> BulkResult:
        """
        Index documents by explicit ID in a single ``_bulk`` request.

        Args:
            items: Documents to write
            refresh: Make the documents searchable before returning

        Returns:
            BulkResult with per-item failures

        Raises:
            StoreConnectionError: If the store cannot be reached
            StoreRequestError: If the whole request is rejected
        """
        lines = []
        submitted = 0
        for item in items:
            lines.append(json.dumps({"index": {"_index": item.index, "_id": item.doc_id}}))
            lines.append(json.dumps(item.document))
            submitted += 1

        result = BulkResult(submitted=submitted)
        if submitted == 0:
            return result

        payload = ("\n".join(lines) + "\n").encode("utf-8")
        response = self._request(
            "POST",
            "/_bulk",
            data=payload,
            headers={"Content-Type": "application/x-ndjson"},
            params={"refresh": "true"} if refresh else None,
        )

        for entry in response.get("items", []):
            action = entry.get("index") or next(iter(entry.values()), {})
            error = action.get("error")
            if error:
                result.errors.append({"_id": action.get("_id"), "error": error})
            else:
                result.indexed += 1
        return result

    def upsert(self, index: str, doc_id: str, document: dict) -> dict:
        """Create or replace a single document."""
        path = f"/{quote(index, safe='')}/_doc/{quote(doc_id, safe='')}"
        return self._request("PUT", path, json_body=document)

    def put_pipeline(self, name: str, body: dict) -> dict:
        return self._request("PUT", f"/_ingest/pipeline/{quote(name, safe='')}", json_body=body)

    def put_index_template(self, name: str, body: dict) -> dict:
        return self._request("PUT", f"/_index_template/{quote(name, safe='')}", json_body=body)

    def close(self):
        """Close the session"""
        self.session.close()
