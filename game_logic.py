# game_logic.py
# Grid model and overlay rules for the Pixel Art puzzle.
# A grid is a 3x3 tuple of tuples; every function returns new grids.

from dataclasses import dataclass

RED = "R"
BLUE = "B"
YELLOW = "Y"
EMPTY = "X"

COLORS = (RED, BLUE, YELLOW)
CELLS = COLORS + (EMPTY,)
SIZE = 3


class InvalidGrid(ValueError):
    """Raised when grid data is not a 3x3 matrix of known cells."""


def make_grid(rows):
    """Build an immutable grid from any nested sequence (e.g. JSON lists)."""
    if rows is None or len(rows) != SIZE:
        raise InvalidGrid(f"grid must have {SIZE} rows, got {rows!r}")

    grid = []
    for row in rows:
        if len(row) != SIZE:
            raise InvalidGrid(f"grid rows must have {SIZE} cells, got {row!r}")
        for cell in row:
            if cell not in CELLS:
                raise InvalidGrid(f"unknown cell {cell!r}")
        grid.append(tuple(row))
    return tuple(grid)


EMPTY_GRID = make_grid([[EMPTY] * SIZE for _ in range(SIZE)])


def grid_to_list(grid):
    """JSON-friendly copy of a grid."""
    return [list(row) for row in grid]


def is_empty_grid(grid) -> bool:
    return all(cell == EMPTY for row in grid for cell in row)


# -----------------------------
# Overlay engine
# -----------------------------
def can_overlay(grid1, grid2) -> bool:
    """True unless some cell is colored in both grids."""
    for i in range(SIZE):
        for j in range(SIZE):
            if grid1[i][j] != EMPTY and grid2[i][j] != EMPTY:
                return False
    return True


def overlay_grids(grids):
    """Stack grids onto an empty base; colored cells overwrite earlier ones."""
    result = [list(row) for row in EMPTY_GRID]

    for grid in grids:
        for i in range(SIZE):
            for j in range(SIZE):
                if grid[i][j] != EMPTY:
                    result[i][j] = grid[i][j]

    return tuple(tuple(row) for row in result)


def grids_equal(grid1, grid2) -> bool:
    for i in range(SIZE):
        for j in range(SIZE):
            if grid1[i][j] != grid2[i][j]:
                return False
    return True


def validate_solution(selected_grids, target) -> bool:
    """
    Acceptance check for a submission: exactly three grids, no two of them
    coloring the same cell, and their overlay equal to the target.
    """
    if len(selected_grids) != 3:
        return False

    # Conflicts fail the submission even if the overlay happens to match
    for i in range(len(selected_grids)):
        for j in range(i + 1, len(selected_grids)):
            if not can_overlay(selected_grids[i], selected_grids[j]):
                return False

    result = overlay_grids(selected_grids)
    return grids_equal(result, target)


def reveal_frames(grids):
    """
    Progressive overlays for the reveal animation: the empty grid, then the
    overlay of the first one, two, ... grids.
    """
    frames = [EMPTY_GRID]
    for count in range(1, len(grids) + 1):
        frames.append(overlay_grids(grids[:count]))
    return frames


# -----------------------------
# Puzzles
# -----------------------------
@dataclass(frozen=True)
class Puzzle:
    id: str
    difficulty: str
    target: tuple
    available_grids: tuple
    solution_indices: tuple

    @classmethod
    def from_row(cls, row):
        """Build a puzzle from a `puzzles` table row or the equivalent JSON."""
        return cls(
            id=str(row["id"]).strip(),
            difficulty=row["difficulty"],
            target=make_grid(row["target_grid"]),
            available_grids=tuple(make_grid(g) for g in row["available_grids"]),
            solution_indices=tuple(int(i) for i in row["solution_indices"]),
        )

    def grids_at(self, indices):
        return [self.available_grids[i] for i in indices]

    def to_public_dict(self):
        """Puzzle payload for players: the solution is left out."""
        return {
            "id": self.id,
            "difficulty": self.difficulty,
            "target_grid": grid_to_list(self.target),
            "available_grids": [grid_to_list(g) for g in self.available_grids],
        }

    def to_row(self):
        row = self.to_public_dict()
        row["solution_indices"] = list(self.solution_indices)
        return row


def check_puzzle(puzzle):
    """
    Return a list of authoring problems (empty when the puzzle is playable).
    """
    problems = []

    if len(puzzle.available_grids) < 3:
        problems.append("fewer than 3 available grids")

    indices = puzzle.solution_indices
    if len(indices) != 3 or len(set(indices)) != 3:
        problems.append("solution must name 3 distinct grids")
        return problems

    if any(i < 0 or i >= len(puzzle.available_grids) for i in indices):
        problems.append("solution index out of range")
        return problems

    if not validate_solution(puzzle.grids_at(indices), puzzle.target):
        problems.append("solution grids do not reproduce the target")

    return problems


R, B, Y, X = RED, BLUE, YELLOW, EMPTY

# Bundled easy puzzle, also used by the tutorial
SAMPLE_PUZZLE = Puzzle(
    id="easy-001",
    difficulty="easy",
    target=make_grid([
        [R, B, X],
        [R, B, Y],
        [X, X, Y],
    ]),
    available_grids=(
        # 0: red column (solution)
        make_grid([[R, X, X], [R, X, X], [X, X, X]]),
        # 1: blue column (solution)
        make_grid([[X, B, X], [X, B, X], [X, X, X]]),
        # 2: yellow corner pair (solution)
        make_grid([[X, X, X], [X, X, Y], [X, X, Y]]),
        # 3-8: decoys
        make_grid([[R, R, X], [X, X, X], [X, X, X]]),
        make_grid([[X, X, X], [B, B, X], [X, X, X]]),
        make_grid([[X, X, Y], [X, X, Y], [X, X, X]]),
        make_grid([[R, X, X], [X, B, X], [X, X, Y]]),
        make_grid([[X, X, X], [X, X, X], [R, B, Y]]),
        make_grid([[X, B, Y], [X, X, X], [X, X, X]]),
    ),
    solution_indices=(0, 1, 2),
)
