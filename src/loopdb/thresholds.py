"""ThresholdTable — the per-cell distance bands a takeoff region must hit.

A candidate loop is accepted only when each of the nine N-anchor/C-anchor
Cα distances lies inside its ``[min, max]`` band.  The bands come from
one of two places:

* **reference statistics** — ``mean ± k·sd`` per cell, from
  :data:`DEFAULT_REFERENCE` (or any :class:`ReferenceDistances`);
* **a distance-table file** — nine ``min max`` lines that override the
  bands cell by cell.

Tables are immutable.  Overrides, sweeps and diffs all produce new
tables, in the same manner as a registry of tunable numbers:

* **inspected** — ``table.band(0, 2)``
* **overridden** — ``table.replace({(0, 2): (4.0, 6.5)})``
* **diffed** — ``table.diff(other)``

Distance-table file format
--------------------------
::

    # min   max        cell order n0-c0, n0-c1, n0-c2, n1-c0, ... n2-c2
    7.10    10.90
    4.90    7.70
    ...

Text after ``#`` is a comment; blank lines are skipped; the first two
whitespace-separated fields of each remaining line are ``min`` and ``max``.
Only the first nine such lines are used.  Cells the file does not reach
keep the values of the base table.

Usage
-----
>>> from loopdb.thresholds import DEFAULT_TABLE, read_table
>>> lo, hi = DEFAULT_TABLE.band(1, 1)    # about (4.50, 6.10)
>>> table = read_table("h3.dist")          # falls back to DEFAULT_TABLE
>>> table.diff(DEFAULT_TABLE)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .geometry import CELLS, Matrix3

logger = logging.getLogger(__name__)

__all__ = [
    "ReferenceDistances",
    "ThresholdTable",
    "DEFAULT_REFERENCE",
    "DEFAULT_SD_MULTIPLIER",
    "DEFAULT_TABLE",
    "parse_table",
    "read_table",
    "format_table",
    "write_table",
]

Band = Tuple[float, float]
Cell = Tuple[int, int]


# ═══════════════════════════════════════════════════════════════════
# ReferenceDistances: mean / sd statistics per cell
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReferenceDistances:
    """Mean and standard deviation of each takeoff distance.

    Parameters
    ----------
    means, sds : Matrix3
        Cell ``(i, j)`` describes the distance between N-anchor residue
        ``i`` and C-anchor residue ``j``.
    name : str
        Label carried into tables built from these statistics.
    n_samples : int
        Number of takeoff regions the statistics were measured on
        (0 when unknown).
    """
    means: Matrix3
    sds: Matrix3
    name: str = "reference"
    n_samples: int = 0

    def __post_init__(self):
        if any(sd < 0 for sd in self.sds):
            raise ValueError("Standard deviations must be non-negative")


# CDR-H3 takeoff region: N-anchor H92-H94, C-anchor H103-H105 (Chothia).
# The two anchors pair as an antiparallel strand ladder, so the
# anti-diagonal (H92-H105, H93-H104, H94-H103) holds the short distances.
_DEFAULT_MEANS = Matrix3.from_rows([
    [9.02, 6.31, 5.18],
    [6.45, 5.30, 6.12],
    [5.61, 6.54, 8.87],
])
_DEFAULT_SDS = Matrix3.from_rows([
    [0.62, 0.38, 0.26],
    [0.47, 0.40, 0.33],
    [0.58, 0.52, 0.71],
])

DEFAULT_REFERENCE: ReferenceDistances = ReferenceDistances(
    _DEFAULT_MEANS, _DEFAULT_SDS, name="cdrh3",
)
"""Compiled-in CDR-H3 takeoff statistics."""

DEFAULT_SD_MULTIPLIER: float = 2.0
"""Default ``k`` in ``mean ± k·sd``."""


# ═══════════════════════════════════════════════════════════════════
# ThresholdTable
# ═══════════════════════════════════════════════════════════════════

class ThresholdTable:
    """Immutable pair of 3×3 ``min`` / ``max`` distance matrices.

    Parameters
    ----------
    minimum, maximum : Matrix3
        Lower and upper band edges, inclusive.
    name : str, optional
        Human-readable label (e.g. ``"cdrh3±2.0sd"``, ``"h3.dist"``).

    Raises
    ------
    ValueError
        If any cell has ``minimum > maximum``.

    Notes
    -----
    * Read-only: ``__setitem__`` raises ``TypeError``.
    * ``replace()`` returns a new table.
    * Iteration yields ``((i, j), (min, max))`` in row-major order.
    """

    def __init__(self, minimum: Matrix3, maximum: Matrix3, *,
                 name: str = "custom"):
        for (i, j) in CELLS:
            if minimum[i, j] > maximum[i, j]:
                raise ValueError(
                    f"Distance band ({i}, {j}) has min {minimum[i, j]} "
                    f"greater than max {maximum[i, j]}")
        self._min = minimum
        self._max = maximum
        self._name = name

    @classmethod
    def from_reference(
        cls,
        reference: ReferenceDistances = DEFAULT_REFERENCE,
        sd_multiplier: float = DEFAULT_SD_MULTIPLIER,
        *,
        name: Optional[str] = None,
    ) -> "ThresholdTable":
        """Bands of ``mean ± sd_multiplier·sd`` for every cell."""
        if sd_multiplier < 0:
            raise ValueError(
                f"sd_multiplier must be non-negative, got {sd_multiplier}")
        means = reference.means.to_array()
        spread = sd_multiplier * reference.sds.to_array()
        return cls(
            Matrix3.from_array(means - spread),
            Matrix3.from_array(means + spread),
            name=name or f"{reference.name}±{sd_multiplier:g}sd",
        )

    @classmethod
    def from_bands(cls, bands, *, name: str = "custom") -> "ThresholdTable":
        """Build from nine ``(min, max)`` pairs in row-major order."""
        bands = list(bands)
        if len(bands) != 9:
            raise ValueError(f"Need 9 (min, max) bands, got {len(bands)}")
        return cls(Matrix3(b[0] for b in bands),
                   Matrix3(b[1] for b in bands), name=name)

    # ── read ────────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def minimum(self) -> Matrix3:
        return self._min

    @property
    def maximum(self) -> Matrix3:
        return self._max

    def band(self, i: int, j: int) -> Band:
        """Return ``(min, max)`` for cell ``(i, j)``."""
        return (self._min[i, j], self._max[i, j])

    def contains(self, i: int, j: int, distance: float) -> bool:
        """True when *distance* lies inside band ``(i, j)`` (inclusive)."""
        return self._min[i, j] <= distance <= self._max[i, j]

    def accepts(self, matrix: Matrix3) -> bool:
        """True when every cell of *matrix* lies inside its band."""
        return all(self.contains(i, j, matrix[i, j]) for (i, j) in CELLS)

    def __iter__(self) -> Iterator[Tuple[Cell, Band]]:
        for (i, j) in CELLS:
            yield (i, j), self.band(i, j)

    def __len__(self) -> int:
        return 9

    def __getitem__(self, cell: Cell) -> Band:
        i, j = cell
        return self.band(i, j)

    def bands(self) -> List[Band]:
        """All nine bands in row-major order."""
        return [band for _, band in self]

    def to_dict(self) -> Dict[str, List[List[float]]]:
        """JSON-safe ``{"name", "min", "max"}`` dict."""
        return {
            "name": self._name,
            "min": [list(r) for r in self._min.rows()],
            "max": [list(r) for r in self._max.rows()],
        }

    def __repr__(self) -> str:
        return f"ThresholdTable({self._name!r})"

    # ── immutable mutation ──────────────────────────────────────

    def __setitem__(self, key, value):
        raise TypeError(
            "ThresholdTable is immutable; use .replace() instead")

    def replace(
        self,
        overrides: Dict[Cell, Band],
        *,
        name: Optional[str] = None,
    ) -> "ThresholdTable":
        """Return a new table with selected bands overridden.

        Parameters
        ----------
        overrides : dict
            ``{(i, j): (min, max)}`` for cells to change.
        name : str, optional
            Name for the new table.  Defaults to ``self.name + "+"``.

        Raises
        ------
        KeyError
            If any key is not a cell ``(i, j)`` with ``0 <= i, j < 3``.
        """
        lows = list(self._min.flat())
        highs = list(self._max.flat())
        for cell, (lo, hi) in overrides.items():
            if cell not in CELLS:
                raise KeyError(
                    f"Unknown distance cell {cell!r}. "
                    f"Valid cells: {list(CELLS)}")
            k = 3 * cell[0] + cell[1]
            lows[k] = float(lo)
            highs[k] = float(hi)
        return ThresholdTable(
            Matrix3(lows), Matrix3(highs),
            name=name or (self._name + "+"),
        )

    # ── comparison ──────────────────────────────────────────────

    def diff(self, other: "ThresholdTable") -> Dict[Cell, Tuple[Band, Band]]:
        """Return ``{cell: (self_band, other_band)}`` for differing cells."""
        result = {}
        for (i, j) in CELLS:
            mine, theirs = self.band(i, j), other.band(i, j)
            if mine != theirs:
                result[(i, j)] = (mine, theirs)
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ThresholdTable):
            return NotImplemented
        return self._min == other._min and self._max == other._max

    def __hash__(self) -> int:
        return hash((self._min, self._max))


DEFAULT_TABLE: ThresholdTable = ThresholdTable.from_reference(
    DEFAULT_REFERENCE, DEFAULT_SD_MULTIPLIER, name="default",
)
"""Bands built from :data:`DEFAULT_REFERENCE` at ``k = 2``."""


# ═══════════════════════════════════════════════════════════════════
# Distance-table files
# ═══════════════════════════════════════════════════════════════════

def _parse_field(token: Optional[str]) -> Optional[float]:
    if token is None:
        return None
    try:
        return float(token)
    except ValueError:
        return None


def parse_table(
    text: str,
    base: ThresholdTable = DEFAULT_TABLE,
    *,
    strict: bool = False,
    name: Optional[str] = None,
) -> ThresholdTable:
    """Apply the bands listed in distance-table *text* on top of *base*.

    Parameters
    ----------
    text : str
        Distance-table file contents.
    base : ThresholdTable
        Supplies the bands for any cells the text does not reach.
    strict : bool
        Raise on malformed numbers instead of reading them as ``0.0``.
    name : str, optional
        Name for the resulting table.

    Raises
    ------
    ValueError
        In strict mode, if a significant line does not start with two
        numbers.  Also if any resulting band has ``min > max``.
    """
    overrides: Dict[Cell, Band] = {}
    n_significant = 0

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].rstrip()
        if not line.strip():
            continue
        n_significant += 1
        if n_significant > 9:
            logger.debug("Ignoring distance-table line %d: %r",
                         lineno, raw.rstrip())
            continue

        fields = line.split()
        lo = _parse_field(fields[0] if fields else None)
        hi = _parse_field(fields[1] if len(fields) > 1 else None)
        if lo is None or hi is None:
            if strict:
                raise ValueError(
                    f"Malformed distance-table line {lineno}: "
                    f"{raw.rstrip()!r} (expected 'min max')")
            logger.warning(
                "Malformed distance-table line %d: %r; reading the band "
                "as 0.0 0.0", lineno, raw.rstrip())
            lo, hi = 0.0, 0.0

        cell = CELLS[n_significant - 1]
        overrides[cell] = (lo, hi)

    if n_significant < 9:
        logger.debug("Distance table supplied %d of 9 bands; remaining "
                     "bands kept from %r", n_significant, base.name)
    return base.replace(overrides, name=name or base.name + "+file")


def read_table(
    path,
    base: ThresholdTable = DEFAULT_TABLE,
    *,
    strict: bool = False,
) -> ThresholdTable:
    """Read a distance-table file over *base*.

    A missing or unreadable file leaves *base* in force.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Cannot read distance table %s (%s); using %r",
                       path, exc, base.name)
        return base
    return parse_table(text, base, strict=strict, name=path.name)


def format_table(table: ThresholdTable) -> str:
    """Render *table* in distance-table file format.

    Values are written at full precision, so re-parsing the text
    reproduces the table exactly.
    """
    lines = [
        f"# Distance table: {table.name}",
        "# min max   cells n0-c0, n0-c1, n0-c2, n1-c0, n1-c1, n1-c2, "
        "n2-c0, n2-c1, n2-c2",
    ]
    for (i, j), (lo, hi) in table:
        lines.append(f"{lo!r} {hi!r}   # n{i}-c{j}")
    return "\n".join(lines) + "\n"


def write_table(table: ThresholdTable, path) -> Path:
    """Write *table* to *path*.  Returns the path."""
    path = Path(path)
    path.write_text(format_table(table), encoding="utf-8")
    return path
