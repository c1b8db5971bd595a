from dataclasses import replace
from itertools import combinations, permutations

import pytest

from game_logic import (
    EMPTY_GRID, InvalidGrid, Puzzle, SAMPLE_PUZZLE, can_overlay, check_puzzle,
    grids_equal, is_empty_grid, make_grid, overlay_grids, reveal_frames,
    validate_solution,
)

GRIDS = SAMPLE_PUZZLE.available_grids
TARGET = SAMPLE_PUZZLE.target
ALL_GRIDS = list(GRIDS) + [EMPTY_GRID, TARGET]


def test_can_overlay_is_symmetric():
    for a, b in combinations(ALL_GRIDS, 2):
        assert can_overlay(a, b) == can_overlay(b, a)


def test_grid_overlays_itself_only_when_empty():
    for grid in ALL_GRIDS:
        assert can_overlay(grid, grid) == is_empty_grid(grid)


def test_overlay_of_nothing_is_empty():
    assert overlay_grids([]) == EMPTY_GRID


def test_overlay_is_order_independent_for_compatible_grids():
    solution = SAMPLE_PUZZLE.grids_at(SAMPLE_PUZZLE.solution_indices)
    results = {overlay_grids(list(order)) for order in permutations(solution)}
    assert results == {TARGET}


def test_overlay_last_writer_wins_on_conflict():
    red = make_grid([["R", "X", "X"], ["X", "X", "X"], ["X", "X", "X"]])
    blue = make_grid([["B", "X", "X"], ["X", "X", "X"], ["X", "X", "X"]])
    assert overlay_grids([red, blue])[0][0] == "B"
    assert overlay_grids([blue, red])[0][0] == "R"


def test_overlay_does_not_touch_inputs():
    before = GRIDS[0]
    overlay_grids([GRIDS[0], GRIDS[1]])
    assert GRIDS[0] == before
    assert isinstance(overlay_grids([GRIDS[0]]), tuple)


@pytest.mark.parametrize("count", [0, 1, 2, 4])
def test_wrong_number_of_grids_never_validates(count):
    selected = (list(SAMPLE_PUZZLE.grids_at((0, 1, 2))) + [EMPTY_GRID])[:count]
    assert validate_solution(selected, TARGET) is False


def test_sample_solution_validates():
    assert validate_solution([GRIDS[0], GRIDS[1], GRIDS[2]], TARGET) is True


def test_decoy_does_not_validate():
    assert validate_solution([GRIDS[3], GRIDS[1], GRIDS[2]], TARGET) is False


def test_red_column_conflicts_with_diagonal_decoy():
    assert can_overlay(GRIDS[0], GRIDS[6]) is False


def test_conflict_fails_even_when_overlay_matches():
    target = make_grid([["R", "B", "X"], ["X", "X", "X"], ["X", "X", "X"]])
    red = make_grid([["R", "X", "X"], ["X", "X", "X"], ["X", "X", "X"]])
    red_blue = make_grid([["R", "B", "X"], ["X", "X", "X"], ["X", "X", "X"]])

    assert grids_equal(overlay_grids([red, red_blue, EMPTY_GRID]), target)
    assert validate_solution([red, red_blue, EMPTY_GRID], target) is False


def test_grids_equal():
    assert grids_equal(TARGET, make_grid([list(row) for row in TARGET]))
    assert not grids_equal(TARGET, EMPTY_GRID)


def test_make_grid_rejects_bad_data():
    with pytest.raises(InvalidGrid):
        make_grid([["R", "X", "X"], ["X", "X", "X"]])
    with pytest.raises(InvalidGrid):
        make_grid([["R", "X"], ["X", "X", "X"], ["X", "X", "X"]])
    with pytest.raises(InvalidGrid):
        make_grid([["G", "X", "X"], ["X", "X", "X"], ["X", "X", "X"]])


def test_reveal_frames_build_up_to_target():
    frames = reveal_frames(SAMPLE_PUZZLE.grids_at((0, 1, 2)))
    assert len(frames) == 4
    assert frames[0] == EMPTY_GRID
    assert frames[1] == GRIDS[0]
    assert frames[-1] == TARGET


def test_sample_puzzle_is_well_formed():
    assert check_puzzle(SAMPLE_PUZZLE) == []


def test_check_puzzle_reports_wrong_solution():
    broken = replace(SAMPLE_PUZZLE, solution_indices=(3, 1, 2))
    assert check_puzzle(broken) == ["solution grids do not reproduce the target"]

    repeated = replace(SAMPLE_PUZZLE, solution_indices=(0, 0, 1))
    assert check_puzzle(repeated) == ["solution must name 3 distinct grids"]


def test_puzzle_from_row_normalizes_id_and_grids():
    row = SAMPLE_PUZZLE.to_row()
    row["id"] = 42
    puzzle = Puzzle.from_row(row)

    assert puzzle.id == "42"
    assert puzzle.target == TARGET
    assert puzzle.available_grids == GRIDS
    assert puzzle.solution_indices == (0, 1, 2)


def test_public_dict_hides_solution():
    payload = SAMPLE_PUZZLE.to_public_dict()
    assert "solution_indices" not in payload
    assert payload["target_grid"] == [["R", "B", "X"], ["R", "B", "Y"], ["X", "X", "Y"]]
