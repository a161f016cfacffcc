"""Geometry primitives — the 3×3 matrix value type and chain integrity.

Every distance and threshold grid in the package is a :class:`Matrix3`:
an immutable, row-major 3×3 grid indexed as ``m[i, j]``.  Row ``i`` is the
i-th residue of the N-terminal anchor, column ``j`` the j-th residue of the
C-terminal anchor.  Row-major order is also the order in which distances
are written to the loop database and read from distance-table files.

Usage
-----
>>> from loopdb.geometry import Matrix3, is_intact
>>> m = Matrix3.from_rows([[1, 2, 3], [4, 5, 6], [7, 8, 9]])
>>> m[1, 2]
6.0
>>> m.flat()
(1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0)
"""

from __future__ import annotations

from typing import Iterable, Iterator, Sequence, Tuple, TYPE_CHECKING

import numpy as np
from scipy.spatial.distance import cdist

if TYPE_CHECKING:
    from .structure import Chain

__all__ = [
    "Matrix3",
    "MAX_CA_CA_DISTANCE_SQ",
    "CELLS",
    "is_intact",
    "distance_matrix",
]


MAX_CA_CA_DISTANCE_SQ: float = 16.0
"""Largest squared Cα–Cα step (4.0 Å) accepted between bonded residues."""

CELLS: Tuple[Tuple[int, int], ...] = tuple(
    (i, j) for i in range(3) for j in range(3)
)
"""All nine ``(i, j)`` cells in row-major order."""


# ═══════════════════════════════════════════════════════════════════
# Matrix3
# ═══════════════════════════════════════════════════════════════════

class Matrix3:
    """Immutable 3×3 grid of floats.

    Parameters
    ----------
    values : iterable of float
        Exactly nine values in row-major order.

    Notes
    -----
    * ``m[i, j]`` reads one cell; ``m[i]`` reads a row as a tuple.
    * Assignment raises ``TypeError``.
    * Equality is exact value equality; use :meth:`allclose` for
      tolerance comparisons.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Iterable[float]):
        vals = tuple(float(v) for v in values)
        if len(vals) != 9:
            raise ValueError(
                f"Matrix3 needs exactly 9 values, got {len(vals)}")
        object.__setattr__(self, "_values", vals)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]]) -> "Matrix3":
        """Build from three rows of three values."""
        if len(rows) != 3 or any(len(r) != 3 for r in rows):
            raise ValueError("Matrix3.from_rows needs a 3×3 nested sequence")
        return cls(v for row in rows for v in row)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "Matrix3":
        """Build from a ``(3, 3)`` numpy array."""
        arr = np.asarray(array, dtype=float)
        if arr.shape != (3, 3):
            raise ValueError(f"Expected shape (3, 3), got {arr.shape}")
        return cls(arr.ravel())

    @classmethod
    def filled(cls, value: float) -> "Matrix3":
        return cls([value] * 9)

    # ── read ────────────────────────────────────────────────────

    def __getitem__(self, key):
        if isinstance(key, tuple):
            i, j = key
            if not (0 <= i < 3 and 0 <= j < 3):
                raise IndexError(f"Matrix3 index out of range: {key}")
            return self._values[3 * i + j]
        if not 0 <= key < 3:
            raise IndexError(f"Matrix3 row out of range: {key}")
        return self._values[3 * key:3 * key + 3]

    def __iter__(self) -> Iterator[float]:
        return iter(self._values)

    def __len__(self) -> int:
        return 9

    def flat(self) -> Tuple[float, ...]:
        """All nine values in row-major order."""
        return self._values

    def rows(self) -> Tuple[Tuple[float, float, float], ...]:
        return tuple(self[i] for i in range(3))

    def to_array(self) -> np.ndarray:
        """Return a fresh ``(3, 3)`` numpy array."""
        return np.array(self._values, dtype=float).reshape(3, 3)

    def allclose(self, other: "Matrix3", atol: float = 1e-6) -> bool:
        return bool(np.allclose(self._values, other._values, atol=atol))

    # ── immutability / comparison ───────────────────────────────

    def __setattr__(self, name, value):
        raise TypeError("Matrix3 is immutable")

    def __setitem__(self, key, value):
        raise TypeError("Matrix3 is immutable")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix3):
            return NotImplemented
        return self._values == other._values

    def __hash__(self) -> int:
        return hash(self._values)

    def __repr__(self) -> str:
        rows = ", ".join(
            "[" + ", ".join(f"{v:.3f}" for v in row) + "]"
            for row in self.rows()
        )
        return f"Matrix3([{rows}])"


# ═══════════════════════════════════════════════════════════════════
# Chain integrity
# ═══════════════════════════════════════════════════════════════════

def is_intact(
    chain: "Chain",
    start: int,
    end: int,
    max_distance_sq: float = MAX_CA_CA_DISTANCE_SQ,
) -> bool:
    """Check that residues ``start .. end-1`` of *chain* have no breaks.

    Every consecutive pair inside the half-open range must sit within
    ``sqrt(max_distance_sq)`` of each other.  A range that runs past the
    last residue of the chain is truncated and counts as broken.

    Parameters
    ----------
    chain : Chain
        Ordered residues of a single chain.
    start, end : int
        Half-open positional range within the chain.
    max_distance_sq : float
        Squared bond-length cap; a step must be strictly larger to break.

    Returns
    -------
    bool
        ``True`` when the range is unbroken (including empty ranges).
    """
    if start < 0:
        raise ValueError(f"Range start must be non-negative, got {start}")
    if end - start < 2:
        return True
    if end > len(chain):
        return False
    steps = chain.step_lengths_sq[start:end - 1]
    return not bool(np.any(steps > max_distance_sq))


def distance_matrix(n_coords: np.ndarray, c_coords: np.ndarray) -> Matrix3:
    """Full 3×3 Euclidean distance matrix between two anchor triplets.

    Parameters
    ----------
    n_coords, c_coords : (3, 3) array-like
        Positions of the N-terminal and C-terminal anchor residues.
    """
    n = np.asarray(n_coords, dtype=float)
    c = np.asarray(c_coords, dtype=float)
    if n.shape != (3, 3) or c.shape != (3, 3):
        raise ValueError(
            f"Anchor coordinates must be (3, 3), got {n.shape} and {c.shape}")
    return Matrix3.from_array(cdist(n, c))
