"""Hash join of relational rows and documents on a shared key."""

import logging
from collections import defaultdict
from collections.abc import Hashable
from typing import Any, Dict, List, Sequence, Union

from ..models.record import Row, JoinSpec, JoinStrategy, JoinedRow

logger = logging.getLogger(__name__)


_MISSING = object()


def join_value(row: Row, join_key: str) -> Any:
    """
    Key value of a row, or _MISSING when the row cannot take part in a match.

    Rows without the key, with a None key or with an unhashable key never
    match anything.
    """
    if not isinstance(row, dict):
        return _MISSING
    value = row.get(join_key)
    if value is None or not isinstance(value, Hashable):
        return _MISSING
    return value


class CrossStoreJoinEngine:
    """
    In-memory hash join across two already fetched result sets.

    The index is built on the second input. Output order is the first
    input's order, followed by unmatched rows of the second input in their
    own order (right and full joins).
    """

    def join(
        self,
        rows_a: Sequence[Row],
        rows_b: Sequence[Row],
        join_key: str,
        strategy: Union[JoinStrategy, str] = JoinStrategy.INNER
    ) -> List[JoinedRow]:
        """
        Join two result sets.

        Args:
            rows_a: Rows from the first store
            rows_b: Rows from the second store
            join_key: Field present in both row shapes
            strategy: inner, left, right or full

        Returns:
            Joined rows; duplicate keys fan out to every matching pair
        """
        strategy = JoinStrategy(strategy)
        keep_unmatched_a = strategy in (JoinStrategy.LEFT, JoinStrategy.FULL)
        keep_unmatched_b = strategy in (JoinStrategy.RIGHT, JoinStrategy.FULL)

        index: Dict[Any, List[Row]] = defaultdict(list)
        for row in rows_b:
            key = join_value(row, join_key)
            if key is not _MISSING:
                index[key].append(row)

        results: List[JoinedRow] = []
        matched_keys = set()

        for row in rows_a:
            if row is None:
                continue
            key = join_value(row, join_key)
            matches = index.get(key, []) if key is not _MISSING else []

            if not matches:
                if keep_unmatched_a:
                    results.append(JoinedRow(source_a=row, source_b=None, join_key=self._raw_key(row, join_key)))
                continue

            matched_keys.add(key)
            for match in matches:
                results.append(JoinedRow(source_a=row, source_b=match, join_key=key))

        if keep_unmatched_b:
            for row in rows_b:
                if row is None:
                    continue
                key = join_value(row, join_key)
                if key is _MISSING or key not in matched_keys:
                    results.append(JoinedRow(source_a=None, source_b=row, join_key=self._raw_key(row, join_key)))

        logger.debug(
            f"{strategy.value} join on {join_key}: {len(rows_a)} x {len(rows_b)} -> {len(results)} rows"
        )
        return results

    def join_spec(self, rows_a: Sequence[Row], rows_b: Sequence[Row], spec: JoinSpec) -> List[JoinedRow]:
        """Join two result sets as described by a JoinSpec."""
        return self.join(rows_a, rows_b, spec.join_key, spec.strategy)

    @staticmethod
    def _raw_key(row: Row, join_key: str) -> Any:
        return row.get(join_key) if isinstance(row, dict) else None
