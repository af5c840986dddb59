"""Tests for levercdp/state/sorted_positions.py."""

from __future__ import annotations

import pytest

from levercdp.state.sorted_positions import SortedPositions


def _list(*entries: tuple[str, int]) -> SortedPositions:
    s = SortedPositions()
    for account, nicr in entries:
        s.insert(account, nicr, None, None)
    return s


class TestInsert:
    def test_descending_order(self):
        s = _list(("a", 5), ("b", 9), ("c", 7))
        assert s.accounts() == ["b", "c", "a"]
        assert s.get_first() == "b"
        assert s.get_last() == "a"
        assert s.size() == 3

    def test_equal_nicr_keeps_insertion_order(self):
        s = _list(("a", 5), ("b", 5))
        assert s.accounts() == ["a", "b"]

    def test_valid_hints_are_used(self):
        s = _list(("a", 9), ("b", 5))
        assert s.valid_insert_position(7, "a", "b")
        s.insert("c", 7, "a", "b")
        assert s.accounts() == ["a", "c", "b"]

    def test_wrong_hints_fall_back(self):
        s = _list(("a", 9), ("b", 5), ("c", 1))
        assert not s.valid_insert_position(7, "b", "c")
        assert not s.valid_insert_position(7, "ghost", None)
        s.insert("d", 7, "b", "c")
        assert s.accounts() == ["a", "d", "b", "c"]

    def test_head_and_tail_hints(self):
        s = _list(("a", 9), ("b", 5))
        assert s.valid_insert_position(10, None, "a")
        assert s.valid_insert_position(1, "b", None)
        assert not s.valid_insert_position(10, "b", None)

    def test_find_insert_position(self):
        s = _list(("a", 9), ("b", 5))
        assert s.find_insert_position(7) == ("a", "b")
        assert s.find_insert_position(10) == (None, "a")
        assert s.find_insert_position(1) == ("b", None)
        assert SortedPositions().find_insert_position(1) == (None, None)

    @pytest.mark.parametrize("account,nicr", [("a", 3), ("z", 0), ("z", -1)])
    def test_rejected(self, account, nicr):
        s = _list(("a", 5))
        with pytest.raises(ValueError):
            s.insert(account, nicr, None, None)

    def test_full(self):
        s = SortedPositions(max_size=1)
        s.insert("a", 1, None, None)
        with pytest.raises(ValueError):
            s.insert("b", 2, None, None)


class TestRemoveAndReinsert:
    def test_remove(self):
        s = _list(("a", 5), ("b", 9))
        s.remove("b")
        assert s.accounts() == ["a"]
        assert not s.contains("b")
        with pytest.raises(ValueError):
            s.remove("b")

    def test_re_insert(self):
        s = _list(("a", 5), ("b", 9), ("c", 7))
        s.re_insert("a", 10, None, None)
        assert s.accounts() == ["a", "b", "c"]
        assert s.get_nicr("a") == 10

    def test_re_insert_unknown(self):
        s = _list(("a", 5))
        with pytest.raises(ValueError):
            s.re_insert("z", 5, None, None)

    def test_snapshot_restore(self):
        s = _list(("a", 5))
        snap = s.snapshot()
        s.insert("b", 9, None, None)
        s.remove("a")
        s.restore(snap)
        assert s.accounts() == ["a"]
        assert s.get_nicr("a") == 5
