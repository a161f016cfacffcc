"""Takeoff-region scanner: windows, evaluation and match records.

For each chain the scanner walks every N-terminal anchor (three
consecutive residues ``n0, n1, n2``) and, for each one, every C-terminal
anchor (``c0, c1, c2``) starting at least two residues after ``n2``.
Each candidate pair goes through two gates:

1. **integrity** — no chain break anywhere from ``n0`` to ``c2``
   (:func:`~loopdb.geometry.is_intact`);
2. **distances** — all nine ``n_i``–``c_j`` Cα distances inside the
   bands of the active :class:`~loopdb.thresholds.ThresholdTable`.

Survivors become :class:`MatchRecord` objects.  Rejected candidates are
dropped silently.

Separation
----------
``separation`` is the number of residues strictly between ``n2`` and
``c0``.  The first C-anchor tried for a given ``n0`` starts at
``n2 + 2`` and so has separation 1; each further start adds one.  With
``max_length > 0`` the inner walk stops as soon as separation exceeds
the cap.  ``min_length`` / ``max_length`` of 0 leave that side open.

Usage
-----
>>> from loopdb.scanner import scan_structure
>>> from loopdb.structure import read_structure
>>> for record in scan_structure(read_structure("pdb12e8.ent"),
...                              min_length=5, max_length=20):
...     print(record.separation, record.n_start, record.c_end)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import numpy as np

from .geometry import CELLS, Matrix3, is_intact
from .structure import Chain, Structure
from .thresholds import DEFAULT_TABLE, ThresholdTable

__all__ = [
    "WindowPair",
    "iter_windows",
    "Evaluation",
    "evaluate",
    "MatchRecord",
    "scan_chain",
    "scan_structure",
]


# ═══════════════════════════════════════════════════════════════════
# Windowing
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WindowPair:
    """Positions of one candidate (N-anchor, C-anchor) pair in a chain."""
    n_start: int
    c_start: int
    separation: int

    @property
    def n_indices(self) -> Tuple[int, int, int]:
        return (self.n_start, self.n_start + 1, self.n_start + 2)

    @property
    def c_indices(self) -> Tuple[int, int, int]:
        return (self.c_start, self.c_start + 1, self.c_start + 2)

    @property
    def end(self) -> int:
        """One past ``c2``; the half-open span is ``[n_start, end)``."""
        return self.c_start + 3


def _check_lengths(min_length: int, max_length: int):
    if min_length < 0 or max_length < 0:
        raise ValueError(
            f"Loop lengths must be non-negative, got min={min_length}, "
            f"max={max_length}")


def iter_windows(
    n_residues: int,
    min_length: int = 0,
    max_length: int = 0,
) -> Iterator[WindowPair]:
    """Yield every anchor pair for a chain of *n_residues* residues.

    Pairs come out ordered by ``n_start``, then by ``c_start``.
    Chains shorter than seven residues yield nothing.
    """
    _check_lengths(min_length, max_length)
    for n0 in range(n_residues):
        # n2 and the residue after it must exist
        if n0 + 3 >= n_residues:
            break
        separation = 0
        for c0 in range(n0 + 4, n_residues):
            separation += 1
            if max_length and separation > max_length:
                break
            if separation < min_length:
                continue
            if c0 + 2 >= n_residues:
                # c1/c2 missing; no later c0 can supply them either
                break
            yield WindowPair(n0, c0, separation)


# ═══════════════════════════════════════════════════════════════════
# Distance-matrix evaluation
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Evaluation:
    """Outcome of testing one anchor pair against a threshold table.

    Truthy when accepted.  On acceptance ``matrix`` holds all nine
    distances; on rejection ``failed_cell`` and ``failed_distance``
    identify the first cell (row-major) that fell outside its band.
    """
    matrix: Optional[Matrix3] = None
    failed_cell: Optional[Tuple[int, int]] = None
    failed_distance: Optional[float] = None

    @property
    def accepted(self) -> bool:
        return self.matrix is not None

    def __bool__(self) -> bool:
        return self.accepted


def evaluate(
    n_coords: np.ndarray,
    c_coords: np.ndarray,
    thresholds: ThresholdTable = DEFAULT_TABLE,
) -> Evaluation:
    """Test an anchor pair cell by cell, stopping at the first miss.

    Parameters
    ----------
    n_coords, c_coords : (3, 3) array-like
        Positions of ``n0, n1, n2`` and ``c0, c1, c2``.
    thresholds : ThresholdTable
        Bands to test against (inclusive).
    """
    n = np.asarray(n_coords, dtype=float)
    c = np.asarray(c_coords, dtype=float)
    values = []
    for (i, j) in CELLS:
        d = float(np.linalg.norm(n[i] - c[j]))
        if not thresholds.contains(i, j, d):
            return Evaluation(failed_cell=(i, j), failed_distance=d)
        values.append(d)
    return Evaluation(matrix=Matrix3(values))


# ═══════════════════════════════════════════════════════════════════
# Match records
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MatchRecord:
    """One accepted takeoff region.

    ``n_start`` is the identifier of ``n0`` and ``c_end`` that of ``c2``;
    ``separation`` is the loop length between the anchors.
    """
    structure_id: str
    n_start: str
    c_end: str
    separation: int
    distances: Matrix3

    def __repr__(self) -> str:
        return (f"MatchRecord({self.structure_id!r}, {self.n_start}-"
                f"{self.c_end}, separation={self.separation})")


# ═══════════════════════════════════════════════════════════════════
# Scanning
# ═══════════════════════════════════════════════════════════════════

def scan_chain(
    chain: Chain,
    thresholds: ThresholdTable = DEFAULT_TABLE,
    min_length: int = 0,
    max_length: int = 0,
    structure_id: str = "",
) -> Iterator[MatchRecord]:
    """Yield a :class:`MatchRecord` for every accepted window in *chain*."""
    coords = chain.coords
    for window in iter_windows(len(chain), min_length, max_length):
        if not is_intact(chain, window.n_start, window.end):
            continue
        result = evaluate(
            coords[window.n_start:window.n_start + 3],
            coords[window.c_start:window.end],
            thresholds,
        )
        if not result:
            continue
        yield MatchRecord(
            structure_id=structure_id,
            n_start=chain[window.n_start].resid,
            c_end=chain[window.end - 1].resid,
            separation=window.separation,
            distances=result.matrix,
        )


def scan_structure(
    structure: Structure,
    thresholds: ThresholdTable = DEFAULT_TABLE,
    min_length: int = 0,
    max_length: int = 0,
) -> Iterator[MatchRecord]:
    """Scan every chain of *structure* in order."""
    for chain in structure.chains:
        yield from scan_chain(chain, thresholds, min_length, max_length,
                              structure_id=structure.code)
