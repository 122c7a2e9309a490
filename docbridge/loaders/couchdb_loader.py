"""CouchDB loader: one database per collection, written through _bulk_docs."""

import json
import time
import logging
import re
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .base import BaseLoader
from ..models.migration import TargetStore

logger = logging.getLogger(__name__)


class CouchDBLoader(BaseLoader):
    """
    Loader for CouchDB over its HTTP API.

    Each collection maps to a database named <database_prefix><collection>.
    Writes are upserts: existing revisions are looked up first so re-running
    a table overwrites documents instead of conflicting.
    """

    def __init__(
        self,
        target: TargetStore,
        dry_run: bool = False,
        batch_size: int = 1000,
        rate_limit: float = 0.0,
        upsert: bool = True,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the CouchDB loader.

        Args:
            target: Target store configuration
            dry_run: If True, simulate writes without making changes
            batch_size: Page size for reads
            rate_limit: Max requests per second (0 disables the limit)
            upsert: Attach current revisions so existing documents are replaced
            session: Preconfigured requests session
        """
        super().__init__("couchdb", dry_run, batch_size)
        if not target.url:
            raise ValueError("CouchDB target requires a url")
        self.target = target
        self.base_url = target.url.rstrip("/")
        self.rate_limit = rate_limit
        self.upsert = upsert
        self._last_request_time = 0.0
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic and authentication."""
        session = requests.Session()

        retry_config = self.target.retry_config
        retries = Retry(
            total=retry_config.get("max_retries", 3),
            backoff_factor=retry_config.get("backoff_factor", 2.0),
            status_forcelist=[429, 500, 502, 503, 504],
        )

        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        if self.target.username:
            session.auth = (self.target.username, self.target.password or "")

        session.headers["Content-Type"] = "application/json"
        session.headers["Accept"] = "application/json"

        return session

    def _rate_limit_wait(self):
        """Wait to respect rate limits."""
        if self.rate_limit > 0:
            elapsed = time.time() - self._last_request_time
            wait_time = (1.0 / self.rate_limit) - elapsed
            if wait_time > 0:
                time.sleep(wait_time)
        self._last_request_time = time.time()

    def database_name(self, collection: str) -> str:
        """CouchDB database name for a collection."""
        name = f"{self.target.database_prefix}{collection}".lower()
        name = re.sub(r"[^a-z0-9_$()+/-]", "_", name)
        if not name[:1].isalpha():
            name = f"db_{name}"
        return name

    def _url(self, collection: str, path: str = "") -> str:
        return f"{self.base_url}/{quote(self.database_name(collection), safe='')}{path}"

    def _request(self, method: str, url: str, payload: Any = None) -> requests.Response:
        self._rate_limit_wait()
        data = json.dumps(payload, default=str) if payload is not None else None
        return self._session.request(method, url, data=data)

    def count_documents(self, collection: str) -> int:
        response = self._request("GET", self._url(collection))
        if response.status_code == 404:
            return 0
        response.raise_for_status()
        return int(response.json().get("doc_count", 0))

    def create_collection(self, collection: str) -> bool:
        if self.dry_run:
            logger.info(f"[dry run] Would create database {self.database_name(collection)}")
            return False

        response = self._request("PUT", self._url(collection))
        if response.status_code == 412:
            logger.debug(f"Database {self.database_name(collection)} already exists")
            return False
        response.raise_for_status()
        logger.info(f"Created database {self.database_name(collection)}")
        return True

    def _write_batch(self, collection: str, documents: List[Dict[str, Any]]) -> int:
        docs = []
        for document in documents:
            doc = dict(document)
            doc["_id"] = str(doc["_id"])
            docs.append(doc)

        if self.upsert:
            revisions = self._current_revisions(collection, [d["_id"] for d in docs])
            for doc in docs:
                if doc["_id"] in revisions:
                    doc["_rev"] = revisions[doc["_id"]]

        response = self._request("POST", self._url(collection, "/_bulk_docs"), {"docs": docs})
        response.raise_for_status()

        results = response.json()
        failures = [r for r in results if r.get("error")]
        written = len(results) - len(failures)

        if failures:
            first = failures[0]
            raise RuntimeError(
                f"{len(failures)} of {len(docs)} documents rejected by {self.database_name(collection)}: "
                f"{first.get('id')}: {first.get('error')} ({first.get('reason')})"
            )

        logger.debug(f"Wrote {written} documents to {self.database_name(collection)}")
        return written

    def _current_revisions(self, collection: str, doc_ids: List[str]) -> Dict[str, str]:
        response = self._request("POST", self._url(collection, "/_all_docs"), {"keys": doc_ids})
        response.raise_for_status()

        revisions = {}
        for row in response.json().get("rows", []):
            value = row.get("value") or {}
            if "error" not in row and value.get("rev"):
                revisions[row["id"]] = value["rev"]
        return revisions

    def read_documents(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        documents: List[Dict[str, Any]] = []
        bookmark = None

        while limit is None or len(documents) < limit:
            page_size = self.batch_size if limit is None else min(self.batch_size, limit - len(documents))
            query: Dict[str, Any] = {"selector": filters or {}, "limit": page_size}
            if bookmark:
                query["bookmark"] = bookmark

            response = self._request("POST", self._url(collection, "/_find"), query)
            if response.status_code == 404:
                logger.warning(f"Database {self.database_name(collection)} does not exist")
                return []
            response.raise_for_status()

            data = response.json()
            page = [self._strip(doc) for doc in data.get("docs", []) if not doc.get("_id", "").startswith("_design/")]
            documents.extend(page)

            bookmark = data.get("bookmark")
            if len(data.get("docs", [])) < page_size or not bookmark:
                break

        return documents

    @staticmethod
    def _strip(document: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in document.items() if k != "_rev"}

    def validate_connection(self) -> bool:
        """Validate connection to the CouchDB server."""
        try:
            self._rate_limit_wait()
            response = self._session.get(f"{self.base_url}/_up")
            return response.status_code < 500
        except requests.exceptions.RequestException as e:
            logger.error(f"CouchDB connection validation failed: {e}")
            return False

    def close(self) -> None:
        self._session.close()
