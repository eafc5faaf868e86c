"""Kibana saved-objects API client."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Union

import requests

from .errors import DashboardImportError, StoreConnectionError, StoreRequestError

logger = logging.getLogger(__name__)


class KibanaClient:
    """Interface to the Kibana saved-objects REST API."""

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
        self.session.headers.update({"kbn-xsrf": "true", "User-Agent": "shc2es/1.0"})

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """
        Make HTTP request to the Kibana API.

        Raises:
            StoreConnectionError: If Kibana cannot be reached
            StoreRequestError: On an HTTP error status
        """
        url = f"{self.base_url}/api/{endpoint}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise StoreConnectionError(f"Failed to connect to Kibana at {self.base_url}: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Kibana API error: HTTP {response.status_code} {response.text[:500]}")
            raise StoreRequestError(
                f"Kibana {method} {endpoint} failed with HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    def import_objects(self, ndjson: str, overwrite: bool = True) -> dict:
        """
        Import saved objects from an NDJSON payload.

        Args:
            ndjson: Saved objects, one per line
            overwrite: Replace objects that already exist

        Returns:
            Kibana import response (``success``, ``successCount``, ``errors``)

        Raises:
            DashboardImportError: If Kibana reports failed objects
        """
        response = self._request(
            "POST",
            "saved_objects/_import",
            params={"overwrite": "true" if overwrite else "false"},
            files={"file": ("dashboard.ndjson", ndjson.encode("utf-8"), "application/ndjson")},
        )
        result = response.json()
        if not result.get("success", False):
            errors = result.get("errors") or []
            raise DashboardImportError(
                f"Dashboard import completed with errors: {len(errors)} errors: {errors[:3]}"
            )
        return result

    def find(self, object_type: str, search: Optional[str] = None, per_page: int = 100) -> list[dict]:
        """Find saved objects of a type, optionally by title substring."""
        params: dict[str, Any] = {"type": object_type, "per_page": per_page}
        if search:
            params["search"] = f"*{search}*"
            params["search_fields"] = "title"
        response = self._request("GET", "saved_objects/_find", params=params)
        return response.json().get("saved_objects", [])

    def export(
        self,
        objects: Optional[Iterable[tuple[str, str]]] = None,
        object_type: Optional[str] = None,
        include_references_deep: bool = True,
    ) -> str:
        """
        Export saved objects as NDJSON.

        Args:
            objects: (type, id) pairs to export
            object_type: Export every object of this type instead
            include_references_deep: Also export everything the objects reference

        Returns:
            NDJSON text, ending with the export metadata line
        """
        body: dict[str, Any] = {"includeReferencesDeep": include_references_deep}
        if objects is not None:
            body["objects"] = [{"type": t, "id": i} for t, i in objects]
        elif object_type:
            body["type"] = object_type
        else:
            raise ValueError("Either objects or object_type is required")

        response = self._request("POST", "saved_objects/_export", json=body)
        return response.text

    def close(self):
        self.session.close()
