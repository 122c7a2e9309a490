"""In-process document store, used for dry runs and tests."""

import copy
import threading
from typing import Any, Dict, List, Optional

from .base import BaseLoader


class InMemoryLoader(BaseLoader):
    """Loader that keeps collections in a dict of id -> document."""

    def __init__(self, dry_run: bool = False, batch_size: int = 1000):
        super().__init__("memory", dry_run, batch_size)
        self.collections: Dict[str, Dict[Any, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def count_documents(self, collection: str) -> int:
        with self._lock:
            return len(self.collections.get(collection, {}))

    def create_collection(self, collection: str) -> bool:
        if self.dry_run:
            return False
        with self._lock:
            if collection in self.collections:
                return False
            self.collections[collection] = {}
            return True

    def _write_batch(self, collection: str, documents: List[Dict[str, Any]]) -> int:
        with self._lock:
            store = self.collections.setdefault(collection, {})
            for document in documents:
                store[document["_id"]] = copy.deepcopy(document)
        return len(documents)

    def read_documents(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        with self._lock:
            documents = list(self.collections.get(collection, {}).values())

        matches = [
            copy.deepcopy(d) for d in documents
            if all(d.get(k) == v for k, v in (filters or {}).items())
        ]
        return matches[:limit] if limit is not None else matches
