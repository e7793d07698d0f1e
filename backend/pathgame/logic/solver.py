"""
Optimal-path search: the longest simple path from the grid center.

Depth-first branch and bound over the fixed 8-neighbour step graph. Cell
sets are int bitmasks over row-major cell indices.

Ordering: a node computes the bound of every child first and tries the
children with the highest bound first, then the fewest onward moves, then
the lowest cell index. Long paths surface early, which tightens pruning,
and the witness path is the same on every run for a given grid.

Bound: take the subgraph H made of the head plus every unvisited cell
reachable from it, and split H into biconnected blocks. A simple path that
leaves a block through a cut vertex can never come back, so an extension
runs through a single chain of blocks hanging off the head in the
block-cut tree, entering each block at its entry cell and leaving it (or
stopping) at one member. Inside a block the chain is charged for cells the
path is forced to miss:

- a cell with at most one neighbour in the block can only be the last cell;
- a cell can be a path neighbour of at most two cells (one if it is the
  entry or the exit), so when more of its neighbours than that have exactly
  two neighbours in the block, the surplus cannot all be visited.

Blocks with fewer than EXACT_BLOCK_CELLS cells besides the entry are solved
exactly instead, by enumerating their paths once per (entry, block).

Transpositions: the future of a branch depends only on the head and the set
of unvisited cells reachable from it. After a branch is fully explored,
best - length bounds the extension available from that state, and a later
branch reaching the same state reuses it.

Pockets: if the search is still running after POCKET_AFTER_NODES nodes, the
root bound is tightened once. For every pair of cells {a, b} that cuts a
pocket P off from the start, a path visits P in a single stretch entered
through a or b: it either crosses P from one gate to the other (counted as
a virtual a-b edge plus the best crossing), ends inside P (counted as the
best lead to a gate plus the best run into P), or skips P. Pocket runs are
enumerated under a step budget; pairs that run out are left out, which only
weakens the tightening.

The search stops as soon as the best length meets the root bound.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from pathgame.logic.exceptions import SolveCancelledError
from pathgame.logic.types import MAX_STEP_DIFFERENCE, NEIGHBOR_OFFSETS, Position, SolverResult

if TYPE_CHECKING:
    import threading
    from collections.abc import Iterator, Sequence

    from pathgame.logic.types import Grid

logger = structlog.get_logger()

CANCEL_CHECK_INTERVAL = 1024  # nodes between cancellation polls; must be a power of two
EXACT_BLOCK_CELLS = 12
POCKET_AFTER_NODES = 256
POCKET_PAIR_STEPS = 60_000
POCKET_TOTAL_STEPS = 300_000


def build_step_graph(grid: Grid) -> list[tuple[int, ...]]:
    """Adjacency lists over row-major cell indices for legal single steps."""
    size = grid.size
    values = [v for row in grid.cells for v in row]
    graph: list[tuple[int, ...]] = []
    for index, value in enumerate(values):
        row, col = divmod(index, size)
        steps = []
        for dr, dc in NEIGHBOR_OFFSETS:
            r, c = row + dr, col + dc
            if 0 <= r < size and 0 <= c < size:
                other = r * size + c
                if abs(values[other] - value) <= MAX_STEP_DIFFERENCE:
                    steps.append(other)
        graph.append(tuple(sorted(steps)))
    return graph


def _cells(mask: int) -> Iterator[int]:
    while mask:
        low = mask & -mask
        yield low.bit_length() - 1
        mask ^= low


def _flood(seed: int, within: int, nbr: Sequence[int]) -> int:
    """Cells of within connected to seed, seed included."""
    seen = frontier = seed
    while frontier:
        low = frontier & -frontier
        frontier ^= low
        new = nbr[low.bit_length() - 1] & within & ~seen
        seen |= new
        frontier |= new
    return seen


def _blocks(head: int, cells: int, nbr: Sequence[int]) -> list[tuple[int, int]]:
    """Biconnected blocks of head plus cells as (entry, mask), children before parents.

    The entry is the block's cell nearest to head; every other member sits
    below it in the block-cut tree.
    """
    allowed = cells | 1 << head
    order: dict[int, int] = {}
    low: dict[int, int] = {}
    stack: list[int] = []
    blocks: list[tuple[int, int]] = []

    def visit(cell: int, parent: int) -> None:
        order[cell] = low[cell] = len(order) + 1
        stack.append(cell)
        rest = nbr[cell] & allowed
        while rest:
            bit = rest & -rest
            rest ^= bit
            other = bit.bit_length() - 1
            if other not in order:
                visit(other, cell)
                if low[other] < low[cell]:
                    low[cell] = low[other]
                if low[other] >= order[cell]:
                    mask = 1 << cell
                    while True:
                        member = stack.pop()
                        mask |= 1 << member
                        if member == other:
                            break
                    blocks.append((cell, mask))
            elif other != parent and order[other] < low[cell]:
                low[cell] = order[other]

    visit(head, -1)
    return blocks


def _missed_cells(nbr: Sequence[int], block: int, ends: int) -> int:
    """Lower bound on the cells of block a path through it must skip.

    ends holds the cells where the path enters and leaves the block; they
    need only one path neighbour inside it.
    """
    missed = 0
    used = 0
    pairs = 0  # cells with exactly two neighbours in the block
    for cell in _cells(block & ~ends):
        degree = (nbr[cell] & block).bit_count()
        if degree <= 1:
            missed += 1
            used |= 1 << cell
        elif degree == 2:
            pairs |= 1 << cell
    if pairs:
        for cell in _cells(block):
            served = nbr[cell] & pairs & ~used
            if not served:
                continue
            limit = 1 if ends >> cell & 1 else 2
            count = served.bit_count()
            if count > limit:
                missed += count - limit
                used |= served
    return missed


def _lead_bound(head: int, cells: int, target: int, nbr: Sequence[int]) -> int | None:
    """Bound on the cells after head of a path inside cells that ends at target; None if unreachable."""
    parents: dict[int, tuple[int, int]] = {}
    for entry, mask in _blocks(head, cells, nbr):
        for cell in _cells(mask & ~(1 << entry)):
            parents[cell] = (entry, mask)
    if target not in parents:
        return None
    total = 0
    cell = target
    while cell != head:
        entry, mask = parents[cell]
        total += mask.bit_count() - 1 - _missed_cells(nbr, mask, 1 << entry | 1 << cell)
        cell = entry
    return total


class _PocketRuns:
    """Longest runs into a pocket from its two gates, counted in pocket cells.

    through: gate to gate across the pocket. ends[x]: from gate x, stopping
    inside without touching the other gate. ends_via[x]: from gate x,
    stopping inside after passing the other gate (which is counted too).
    """

    def __init__(self, a: int, b: int) -> None:
        self.through = 0
        self.ends = {a: 0, b: 0}
        self.ends_via = {a: 0, b: 0}


class _Search:
    """Mutable search state for one solve() call."""

    def __init__(self, grid: Grid, cancel: threading.Event | None) -> None:
        self._size = grid.size
        self._nbr = [sum(1 << other for other in steps) for steps in build_step_graph(grid)]
        self._cancel = cancel
        self._free = (1 << self._size * self._size) - 1
        self._path: list[int] = []
        self._memo: dict[tuple[int, int], int] = {}
        self._exact: dict[tuple[int, int], dict[int, int]] = {}
        self._root = (0, 0)
        self._pocket_steps = 0
        self.best: list[int] = []
        self.nodes = 0
        self.memo_hits = 0
        self.root_bound = 0
        self.chain_bound = 0

    def run(self, start: int) -> None:
        self._free &= ~(1 << start)
        self._path.append(start)
        self.best = [start]
        reach = _flood(self._nbr[start] & self._free, self._free, self._nbr)
        bound = self._chain(start, reach)
        self._root = (start, reach)
        self.chain_bound = self.root_bound = 1 + bound
        self._descend(start, reach, bound)

    def _exact_ends(self, entry: int, block: int) -> dict[int, int]:
        """Most block cells after entry on a path ending at each reachable member."""
        key = (entry, block)
        ends = self._exact.get(key)
        if ends is None:
            ends = {}
            nbr = self._nbr

            def extend(cell: int, used: int, count: int) -> None:
                rest = nbr[cell] & block & ~used
                while rest:
                    bit = rest & -rest
                    rest ^= bit
                    other = bit.bit_length() - 1
                    if count + 1 > ends.get(other, 0):
                        ends[other] = count + 1
                    extend(other, used | bit, count + 1)

            extend(entry, 1 << entry, 0)
            self._exact[key] = ends
        return ends

    def _chain(self, head: int, reach: int, nbr: Sequence[int] | None = None) -> int:
        """Upper bound on the cells a path from head can add inside reach.

        A custom nbr (with virtual edges) disables the exact small-block
        solutions, which are cached against the real step graph.
        """
        exact = nbr is None
        if nbr is None:
            nbr = self._nbr
        below: dict[int, int] = {}  # cut vertex -> best chain hanging under it
        for entry, block in _blocks(head, reach, nbr):
            members = block & ~(1 << entry)
            size = members.bit_count()
            if exact and size < EXACT_BLOCK_CELLS:
                value = max(
                    (count + below.get(end, 0) for end, count in self._exact_ends(entry, block).items()),
                    default=0,
                )
            else:
                value = size - max(_missed_cells(nbr, block, 1 << entry) - 1, 0)
                for cell, tail in below.items():
                    if members >> cell & 1:
                        leaving = size - _missed_cells(nbr, block, 1 << entry | 1 << cell) + tail
                        if leaving > value:
                            value = leaving
            if value > below.get(entry, 0):
                below[entry] = value
        return below.get(head, 0)

    def _scan_pocket(self, a: int, b: int, pocket: int, limits: _PocketRuns) -> _PocketRuns | None:
        """Exact pocket runs, or None once a run passes its limit or the step budget runs out."""
        nbr = self._nbr
        area = pocket | 1 << a | 1 << b
        runs = _PocketRuns(a, b)
        steps = POCKET_PAIR_STEPS

        def walk(start: int, gate: int, cell: int, used: int, inside: int, past_gate: bool) -> bool:
            nonlocal steps
            rest = nbr[cell] & area & ~used
            while rest:
                bit = rest & -rest
                rest ^= bit
                steps -= 1
                self._pocket_steps -= 1
                if steps < 0 or self._pocket_steps < 0:
                    return False
                other = bit.bit_length() - 1
                count = inside + 1 if pocket & bit else inside
                if other == gate:
                    if count > runs.through:
                        runs.through = count
                        if count > limits.through:
                            return False
                elif past_gate:
                    if count + 1 > runs.ends_via[start]:
                        runs.ends_via[start] = count + 1
                        if count + 1 > limits.ends_via[start]:
                            return False
                elif count > runs.ends[start]:
                    runs.ends[start] = count
                    if count > limits.ends[start]:
                        return False
                if not walk(start, gate, other, used | bit, count, past_gate or other == gate):
                    return False
            return True

        if walk(a, b, a, 1 << a, 0, False) and walk(b, a, b, 1 << b, 0, False):
            return runs
        return None

    def _pocket_bound(self) -> int:
        """Root bound tightened over two-cell pocket separators."""
        head, reach = self._root
        nbr = self._nbr
        bound = self.root_bound
        self._pocket_steps = POCKET_TOTAL_STEPS
        near = nbr[head] & reach
        for a in _cells(reach):
            for b in _cells(reach >> (a + 1) << (a + 1)):
                rest = reach & ~(1 << a | 1 << b)
                pocket = rest & ~_flood(near & rest, rest, nbr)
                if not pocket or not nbr[a] & pocket or not nbr[b] & pocket:
                    continue
                outside = rest & ~pocket | 1 << a | 1 << b
                target = bound - 2  # best extension a pair must prove to lower the bound
                best = self._chain(head, outside)
                if best > target:
                    continue
                joined = list(nbr)
                joined[a] |= 1 << b
                joined[b] |= 1 << a
                crossing = self._chain(head, outside, joined)
                lead = {x: _lead_bound(head, outside, x, nbr) for x in (a, b)}
                lead_alone = {a: _lead_bound(head, outside & ~(1 << b), a, nbr)}
                lead_alone[b] = _lead_bound(head, outside & ~(1 << a), b, nbr)

                limits = _PocketRuns(a, b)
                limits.through = target - crossing
                for x in (a, b):
                    limits.ends[x] = target - lead[x] if lead[x] is not None else len(nbr)
                    limits.ends_via[x] = target - lead_alone[x] if lead_alone[x] is not None else len(nbr)
                runs = self._scan_pocket(a, b, pocket, limits)
                if self._pocket_steps < 0:
                    return bound
                if runs is None:
                    continue

                if runs.through:
                    best = max(best, crossing + runs.through)
                for x in (a, b):
                    if runs.ends[x] and lead[x] is not None:
                        best = max(best, lead[x] + runs.ends[x])
                    if runs.ends_via[x] and lead_alone[x] is not None:
                        best = max(best, lead_alone[x] + runs.ends_via[x])
                bound = min(bound, 1 + best)
        return bound

    def _descend(self, head: int, reach: int, bound: int) -> bool:
        """Explore from head; return True once the root bound has been reached."""
        self.nodes += 1
        if self._cancel is not None and self.nodes & (CANCEL_CHECK_INTERVAL - 1) == 0 and self._cancel.is_set():
            raise SolveCancelledError
        if self.nodes == POCKET_AFTER_NODES:
            self.root_bound = self._pocket_bound()

        length = len(self._path)
        if length > len(self.best):
            self.best = list(self._path)
        if len(self.best) >= self.root_bound:
            return True
        if length + bound <= len(self.best):
            return False

        nbr = self._nbr
        children = []
        for cell in _cells(nbr[head] & self._free):
            self._free ^= 1 << cell
            child_reach = _flood(nbr[cell] & self._free, self._free, nbr)
            known = self._memo.get((cell, child_reach))
            if known is not None:
                self.memo_hits += 1
                child_bound = known
            else:
                child_bound = self._chain(cell, child_reach)
            children.append((-child_bound, (nbr[cell] & self._free).bit_count(), cell, child_reach))
            self._free |= 1 << cell
        children.sort()

        for negated_bound, _, cell, child_reach in children:
            if length + 1 - negated_bound <= len(self.best):
                break
            self._free ^= 1 << cell
            self._path.append(cell)
            try:
                if self._descend(cell, child_reach, -negated_bound):
                    return True
            finally:
                self._path.pop()
                self._free |= 1 << cell

        self._memo[(head, reach)] = len(self.best) - length
        return False

    def to_positions(self, cells: list[int]) -> tuple[Position, ...]:
        return tuple(Position(*divmod(cell, self._size)) for cell in cells)


def solve(grid: Grid, *, cancel: threading.Event | None = None) -> SolverResult:
    """Find the longest simple path from the center of the grid.

    The result always has length >= 1 (the center alone). When cancel is
    given and gets set during the search, SolveCancelledError is raised.
    """
    started = time.perf_counter()
    search = _Search(grid, cancel)
    center = grid.center
    search.run(center.row * grid.size + center.col)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "solved grid",
        grid_size=grid.size,
        length=len(search.best),
        chain_bound=search.chain_bound,
        root_bound=search.root_bound,
        nodes=search.nodes,
        memo_hits=search.memo_hits,
        elapsed_ms=round(elapsed_ms, 1),
    )
    return SolverResult(length=len(search.best), path=search.to_positions(search.best), nodes=search.nodes)
