"""Tests for the cross-store hash join."""

import pytest

from docbridge.models.record import JoinSpec, JoinStrategy, JoinedRow
from docbridge.services.join import CrossStoreJoinEngine


@pytest.fixture
def engine():
    return CrossStoreJoinEngine()


@pytest.fixture
def customers():
    return [
        {"customer_id": 1, "name": "Mary"},
        {"customer_id": 2, "name": "Patricia"},
        {"customer_id": 3, "name": "Linda"},
        {"name": "No Key"},
    ]


@pytest.fixture
def payments():
    return [
        {"customer_id": 1, "amount": 2.99},
        {"customer_id": 1, "amount": 0.99},
        {"customer_id": 3, "amount": 5.99},
        {"customer_id": 9, "amount": 9.99},
        {"customer_id": None, "amount": 1.00},
    ]


def pairs(rows):
    return [(r.source_a, r.source_b) for r in rows]


class TestScenario:
    def test_full_join(self, engine):
        rows_a = [{"id": 1, "k": "x"}, {"id": 2, "k": "y"}]
        rows_b = [{"k": "x", "v": 9}]

        result = engine.join(rows_a, rows_b, "k", "full")

        assert pairs(result) == [
            ({"id": 1, "k": "x"}, {"k": "x", "v": 9}),
            ({"id": 2, "k": "y"}, None),
        ]
        assert result[0].join_key == "x"


class TestStrategies:
    def test_inner(self, engine, customers, payments):
        result = engine.join(customers, payments, "customer_id", JoinStrategy.INNER)

        assert [(r.source_a["name"], r.source_b["amount"]) for r in result] == [
            ("Mary", 2.99), ("Mary", 0.99), ("Linda", 5.99),
        ]
        assert all(r.is_matched for r in result)

    def test_left(self, engine, customers, payments):
        result = engine.join(customers, payments, "customer_id", JoinStrategy.LEFT)

        unmatched = [r.source_a["name"] for r in result if r.source_b is None]
        assert unmatched == ["Patricia", "No Key"]
        assert all(r.source_a is not None for r in result)
        assert len(result) == 5

    def test_right(self, engine, customers, payments):
        result = engine.join(customers, payments, "customer_id", JoinStrategy.RIGHT)

        assert all(r.source_b is not None for r in result)
        assert [r.source_b["amount"] for r in result if r.source_a is None] == [9.99, 1.00]
        assert len(result) == 5

    def test_full_order(self, engine, customers, payments):
        result = engine.join(customers, payments, "customer_id", JoinStrategy.FULL)

        names = [r.source_a["name"] if r.source_a else None for r in result]
        assert names == ["Mary", "Mary", "Patricia", "Linda", "No Key", None, None]
        assert [r.source_b["amount"] for r in result[-2:]] == [9.99, 1.00]

    def test_cartesian_fan_out(self, engine):
        rows_a = [{"k": 1, "a": "first"}, {"k": 1, "a": "second"}]
        rows_b = [{"k": 1, "b": "x"}, {"k": 1, "b": "y"}, {"k": 1, "b": "z"}]

        result = engine.join(rows_a, rows_b, "k", "inner")

        assert len(result) == 6
        assert [(r.source_a["a"], r.source_b["b"]) for r in result] == [
            ("first", "x"), ("first", "y"), ("first", "z"),
            ("second", "x"), ("second", "y"), ("second", "z"),
        ]

    def test_unknown_strategy(self, engine):
        with pytest.raises(ValueError):
            engine.join([], [], "k", "cross")


class TestMalformedInput:
    def test_missing_and_none_keys_never_match(self, engine):
        rows_a = [{"other": 1}, {"k": None}]
        rows_b = [{"other": 1}, {"k": None}]

        assert engine.join(rows_a, rows_b, "k", "inner") == []
        assert len(engine.join(rows_a, rows_b, "k", "full")) == 4

    def test_unhashable_key_never_matches(self, engine):
        rows_a = [{"k": ["x"]}]
        rows_b = [{"k": ["x"]}]

        assert engine.join(rows_a, rows_b, "k", "inner") == []
        assert len(engine.join(rows_a, rows_b, "k", "full")) == 2

    def test_empty_inputs(self, engine):
        assert engine.join([], [{"k": 1}], "k", "left") == []
        assert pairs(engine.join([], [{"k": 1}], "k", "right")) == [(None, {"k": 1})]


class TestRoundTrip:
    def test_no_rows_created_or_lost(self, engine, customers, payments):
        inner = engine.join(customers, payments, "customer_id", "inner")
        left = engine.join(customers, payments, "customer_id", "left")
        right = engine.join(customers, payments, "customer_id", "right")
        full = engine.join(customers, payments, "customer_id", "full")

        matched_a = {id(r.source_a) for r in inner}
        matched_b = {id(r.source_b) for r in inner}
        a_only = [r.source_a for r in left if r.source_b is None]
        b_only = [r.source_b for r in right if r.source_a is None]

        assert {id(r) for r in a_only} | matched_a == {id(r) for r in customers}
        assert {id(r) for r in b_only} | matched_b == {id(r) for r in payments}
        assert not matched_a & {id(r) for r in a_only}
        assert not matched_b & {id(r) for r in b_only}
        assert len(full) == len(inner) + len(a_only) + len(b_only)


class TestJoinSpec:
    def test_join_spec(self, engine):
        spec = JoinSpec.from_dict({"join_key": "k", "strategy": "left"})
        result = engine.join_spec([{"k": 1}], [], spec)

        assert pairs(result) == [({"k": 1}, None)]

    def test_joined_row_needs_a_side(self):
        with pytest.raises(ValueError):
            JoinedRow(source_a=None, source_b=None)
