import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from rankd.core.exceptions import InvariantViolationError
from rankd.features.ranking.invariants import check_partition, find_violations
from rankd.features.ranking.shift import changed_entries, close_gap, open_gap
from tests.helpers.ranking import make_partition


def _ranks(partition):
    return {entry.title: entry.rank for entry in partition}


def test_open_gap_moves_entries_at_and_below():
    partition = make_partition(3)
    shifted = open_gap(partition, 2)

    assert _ranks(shifted) == {"Title 1": 1, "Title 2": 3, "Title 3": 4}
    assert sorted(entry.rank for entry in shifted) == [1, 3, 4]


def test_open_gap_does_not_modify_input():
    partition = make_partition(3)
    open_gap(partition, 1)
    assert [entry.rank for entry in partition] == [1, 2, 3]


def test_open_gap_at_end_changes_nothing():
    partition = make_partition(3)
    assert changed_entries(partition, open_gap(partition, 4)) == []


def test_open_gap_on_empty_partition():
    assert open_gap([], 1) == []


@pytest.mark.parametrize("rank", [0, 5, -1])
def test_open_gap_rejects_out_of_range(rank):
    with pytest.raises(InvariantViolationError, match="valid: 1..4"):
        open_gap(make_partition(3), rank)


def test_delete_middle_closes_gap():
    a, b, c = make_partition(3)
    shifted = close_gap([a, c], b.rank)

    assert _ranks(shifted) == {"Title 1": 1, "Title 3": 2}
    check_partition(shifted)


def test_close_gap_rejects_occupied_rank():
    with pytest.raises(InvariantViolationError, match="still held by 'Title 2'"):
        close_gap(make_partition(3), 2)


def test_close_gap_rejects_non_positive_rank():
    with pytest.raises(InvariantViolationError):
        close_gap(make_partition(2), 0)


def test_changed_entries_reports_only_moved_rows():
    partition = make_partition(4)
    shifted = open_gap(partition, 3)
    assert [entry.title for entry in changed_entries(partition, shifted)] == ["Title 3", "Title 4"]


@settings(deadline=None)
@given(st.data(), st.integers(min_value=0, max_value=30))
def test_open_then_fill_and_delete_keep_ranks_contiguous(data, size):
    partition = make_partition(size)
    rank = data.draw(st.integers(min_value=1, max_value=size + 1))

    shifted = open_gap(partition, rank)
    assert all(entry.rank != rank for entry in shifted)
    placeholder = make_partition(1)[0].model_copy(update={"id": "new", "external_id": "new", "rank": rank})
    grown = [*shifted, placeholder]
    assert find_violations(grown) == []

    removed = data.draw(st.sampled_from(grown))
    shrunk = close_gap([entry for entry in grown if entry.id != removed.id], removed.rank)
    assert find_violations(shrunk) == []
    # Relative order of survivors is preserved.
    survivors = sorted(shrunk, key=lambda entry: entry.rank)
    before = sorted((entry for entry in grown if entry.id != removed.id), key=lambda entry: entry.rank)
    assert [entry.id for entry in survivors] == [entry.id for entry in before]
