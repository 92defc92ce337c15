from typing import List, Optional, Sequence, Set, Tuple

from .rules import DEFAULT_RULES

Grid = List[List[int]]

SIZE = DEFAULT_RULES.board_size


def empty_board(size: int = SIZE) -> Grid:
    return [[0] * size for _ in range(size)]


def copy_board(grid: Grid) -> Grid:
    return [list(row) for row in grid]


def can_place(cells: Sequence[Sequence[int]], x: int, y: int, grid: Grid) -> bool:
    """True if every occupied cell of ``cells`` at origin (x, y) is on the board and free.

    ``x`` is the column and ``y`` the row of the shape's top-left corner.
    """
    size = len(grid)
    for r, row in enumerate(cells):
        for c, cell in enumerate(row):
            if not cell:
                continue
            bx, by = x + c, y + r
            if bx < 0 or bx >= size or by < 0 or by >= size:
                return False
            if grid[by][bx]:
                return False
    return True


def place(cells: Sequence[Sequence[int]], x: int, y: int, grid: Grid) -> Grid:
    """Return a copy of ``grid`` with the shape stamped in. Caller checks ``can_place`` first."""
    out = copy_board(grid)
    for r, row in enumerate(cells):
        for c, cell in enumerate(row):
            if cell:
                out[y + r][x + c] = 1
    return out


def fits_anywhere(cells: Sequence[Sequence[int]], grid: Grid) -> bool:
    size = len(grid)
    for y in range(size):
        for x in range(size):
            if can_place(cells, x, y, grid):
                return True
    return False


def full_lines(grid: Grid) -> Tuple[Set[int], Set[int]]:
    size = len(grid)
    rows = {r for r in range(size) if all(grid[r])}
    cols = {c for c in range(size) if all(grid[r][c] for r in range(size))}
    return rows, cols


def clear_lines(grid: Grid, rows: Set[int], cols: Set[int]) -> Grid:
    size = len(grid)
    return [
        [0 if (r in rows or c in cols) else grid[r][c] for c in range(size)]
        for r in range(size)
    ]


def cleared_cell_count(rows: Set[int], cols: Set[int], size: int = SIZE) -> int:
    # row/column intersections are counted once
    return len(rows) * size + len(cols) * size - len(rows) * len(cols)


def encode_board(grid: Grid) -> str:
    """Row-major string with one '0'/'1' character per cell."""
    return ''.join('1' if cell else '0' for row in grid for cell in row)


def decode_board(text: Optional[str], size: int = SIZE) -> Grid:
    grid = empty_board(size)
    if not text:
        return grid
    for i in range(min(len(text), size * size)):
        grid[i // size][i % size] = 1 if text[i] == '1' else 0
    return grid
