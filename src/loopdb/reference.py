"""Reference takeoff statistics from numbered antibody structures.

The default distance bands are ``mean ± k·sd`` of the takeoff distances
seen in real antibodies.  This module measures those distances: for each
Chothia-numbered heavy chain it takes the Cα positions of H92-H94 and
H103-H105, builds the 3×3 distance matrix, and summarises the corpus as
a :class:`~loopdb.thresholds.ReferenceDistances`.

Usage
-----
>>> from loopdb.reference import collect_takeoffs, reference_from_matrices
>>> matrices = collect_takeoffs(sorted(Path("abs/").glob("*.pdb")))
>>> ref = reference_from_matrices(matrices, name="abs-2024")
>>> table = ThresholdTable.from_reference(ref, 2.0)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .geometry import Matrix3, distance_matrix
from .structure import Chain, read_structure
from .thresholds import ReferenceDistances

logger = logging.getLogger(__name__)

__all__ = [
    "H3_N_ANCHOR",
    "H3_C_ANCHOR",
    "measure_takeoff",
    "collect_takeoffs",
    "reference_from_matrices",
]

H3_N_ANCHOR = ("92", "93", "94")
H3_C_ANCHOR = ("103", "104", "105")


def measure_takeoff(
    chain: Chain,
    n_ids: Sequence[str],
    c_ids: Sequence[str],
) -> Optional[Matrix3]:
    """Distance matrix between the named anchor residues of *chain*.

    Parameters
    ----------
    chain : Chain
        Numbered chain to measure.
    n_ids, c_ids : sequence of 3 str
        Residue identifiers (e.g. ``("H92", "H93", "H94")``).

    Returns
    -------
    Matrix3 or None
        None when any of the six residues is absent.
    """
    if len(n_ids) != 3 or len(c_ids) != 3:
        raise ValueError("Each anchor needs exactly three residue ids")
    positions = []
    for resid in list(n_ids) + list(c_ids):
        idx = chain.index_of(resid)
        if idx is None:
            return None
        positions.append(chain.coords[idx])
    return distance_matrix(positions[:3], positions[3:])


def collect_takeoffs(
    paths: Iterable,
    chain: str = "H",
    n_numbers: Sequence[str] = H3_N_ANCHOR,
    c_numbers: Sequence[str] = H3_C_ANCHOR,
) -> List[Matrix3]:
    """Measure the takeoff matrix in every file that has it.

    Files that cannot be read, lack the chain, or lack any anchor residue
    are skipped with a log record.
    """
    n_ids = [chain + n for n in n_numbers]
    c_ids = [chain + c for c in c_numbers]
    matrices: List[Matrix3] = []
    for path in paths:
        try:
            structure = read_structure(path)
        except (OSError, ValueError) as exc:
            logger.warning("Skipping %s: %s", path, exc)
            continue
        target = structure.chain(chain)
        if target is None:
            logger.info("%s: no chain %s", Path(str(path)).name, chain)
            continue
        matrix = measure_takeoff(target, n_ids, c_ids)
        if matrix is None:
            logger.info("%s: takeoff residues incomplete",
                        Path(str(path)).name)
            continue
        matrices.append(matrix)
    return matrices


def reference_from_matrices(
    matrices: Sequence[Matrix3],
    name: str = "reference",
) -> ReferenceDistances:
    """Per-cell mean and sample standard deviation of *matrices*.

    A single matrix gives standard deviations of 0.0.

    Raises
    ------
    ValueError
        If *matrices* is empty.
    """
    if not matrices:
        raise ValueError("Need at least one takeoff matrix")
    stack = np.array([m.to_array() for m in matrices])
    means = stack.mean(axis=0)
    if len(matrices) > 1:
        sds = stack.std(axis=0, ddof=1)
    else:
        sds = np.zeros((3, 3))
    return ReferenceDistances(
        Matrix3.from_array(means),
        Matrix3.from_array(sds),
        name=name,
        n_samples=len(matrices),
    )
