"""Structure readers — one Cα per residue, grouped into chains.

Supplies the scanner with ordered, per-chain residue sequences.  Two text
formats are understood:

* **PDB** — fixed-column ``ATOM`` records.
* **mmCIF** — the ``_atom_site`` loop.

Only ``ATOM`` records named ``CA`` from the first model are kept; for
residues with alternate locations the first location seen wins.  A new
:class:`Chain` starts wherever the chain label changes.

Usage
-----
>>> from loopdb.structure import read_structure
>>> structure = read_structure("pdb/pdb12e8.ent")
>>> structure.code
'12e8'
>>> [(c.label, len(c)) for c in structure.chains]
[('L', 214), ('H', 221), ...]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np

__all__ = [
    "Residue",
    "Chain",
    "Structure",
    "parse_pdb_text",
    "parse_mmcif_text",
    "parse_structure_text",
    "read_structure",
    "pdb_code_from_filename",
]


# ═══════════════════════════════════════════════════════════════════
# Data types
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Residue:
    """One residue, represented by its Cα position."""
    chain: str
    resnum: int
    insert: str
    position: Tuple[float, float, float]

    @property
    def resid(self) -> str:
        """Printable identifier, e.g. ``H100A``."""
        return f"{self.chain}{self.resnum}{self.insert.strip()}"

    def __repr__(self) -> str:
        x, y, z = self.position
        return f"Residue({self.resid}, {x:.3f}, {y:.3f}, {z:.3f})"


@dataclass(frozen=True)
class Chain:
    """Ordered residues sharing one chain label.

    ``coords`` and ``step_lengths_sq`` are computed once on construction;
    ``step_lengths_sq[k]`` is the squared distance between residue ``k``
    and residue ``k + 1``.
    """
    label: str
    residues: Tuple[Residue, ...]
    coords: np.ndarray = field(init=False, repr=False, compare=False)
    step_lengths_sq: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        residues = tuple(self.residues)
        object.__setattr__(self, "residues", residues)
        if residues:
            coords = np.array([r.position for r in residues], dtype=float)
        else:
            coords = np.zeros((0, 3), dtype=float)
        coords.setflags(write=False)
        steps = np.diff(coords, axis=0)
        step_sq = np.einsum("ij,ij->i", steps, steps)
        step_sq.setflags(write=False)
        object.__setattr__(self, "coords", coords)
        object.__setattr__(self, "step_lengths_sq", step_sq)

    def __len__(self) -> int:
        return len(self.residues)

    def __getitem__(self, index: int) -> Residue:
        return self.residues[index]

    def __iter__(self) -> Iterator[Residue]:
        return iter(self.residues)

    def index_of(self, resid: str) -> Optional[int]:
        """Position of the residue with identifier *resid*, or None."""
        for i, res in enumerate(self.residues):
            if res.resid == resid:
                return i
        return None

    @classmethod
    def from_coords(
        cls,
        coords,
        label: str = "A",
        first_resnum: int = 1,
    ) -> "Chain":
        """Build a chain from an ``(N, 3)`` array, numbering residues
        consecutively from *first_resnum*."""
        arr = np.asarray(coords, dtype=float).reshape(-1, 3)
        residues = tuple(
            Residue(label, first_resnum + k, "",
                    (float(x), float(y), float(z)))
            for k, (x, y, z) in enumerate(arr)
        )
        return cls(label, residues)


@dataclass(frozen=True)
class Structure:
    """A structure: an identifier plus its chains in file order."""
    code: str
    chains: Tuple[Chain, ...]

    @property
    def n_residues(self) -> int:
        return sum(len(c) for c in self.chains)

    def chain(self, label: str) -> Optional[Chain]:
        """First chain with the given label, or None."""
        for c in self.chains:
            if c.label == label:
                return c
        return None

    def __repr__(self) -> str:
        return (f"Structure({self.code!r}, {len(self.chains)} chains, "
                f"{self.n_residues} residues)")


# ═══════════════════════════════════════════════════════════════════
# Chain assembly
# ═══════════════════════════════════════════════════════════════════

def _split_chains(residues: Iterable[Residue]) -> Tuple[Chain, ...]:
    """Group residues into chains, breaking on every label change."""
    chains: List[Chain] = []
    current: List[Residue] = []
    for res in residues:
        if current and res.chain != current[-1].chain:
            chains.append(Chain(current[-1].chain, tuple(current)))
            current = []
        current.append(res)
    if current:
        chains.append(Chain(current[-1].chain, tuple(current)))
    return tuple(chains)


# ═══════════════════════════════════════════════════════════════════
# PDB format
# ═══════════════════════════════════════════════════════════════════

def parse_pdb_text(text: str, code: str = "") -> Structure:
    """Parse PDB-format text into a :class:`Structure`.

    Raises
    ------
    ValueError
        If a selected ``CA`` record has unreadable coordinates or
        residue number.
    """
    residues: List[Residue] = []
    seen = set()

    for lineno, line in enumerate(text.splitlines(), start=1):
        if line.startswith("ENDMDL"):
            break
        if not line.startswith("ATOM"):
            continue
        if line[12:16].strip() != "CA":
            continue
        chain = line[21:22].strip()
        insert = line[26:27].strip()
        try:
            resnum = int(line[22:26])
            position = (float(line[30:38]), float(line[38:46]),
                        float(line[46:54]))
        except ValueError:
            raise ValueError(
                f"Malformed ATOM record at line {lineno}: {line.rstrip()!r}")
        key = (chain, resnum, insert)
        if key in seen:
            # alternate location of a residue already taken
            continue
        seen.add(key)
        residues.append(Residue(chain, resnum, insert, position))

    return Structure(code, _split_chains(residues))


# ═══════════════════════════════════════════════════════════════════
# mmCIF format
# ═══════════════════════════════════════════════════════════════════

def _first(record: Dict[str, str], *keys: str, default: str = "") -> str:
    for k in keys:
        v = record.get(k)
        if v is not None and v not in (".", "?"):
            return v
    return default


def parse_mmcif_text(text: str, code: str = "") -> Structure:
    """Parse the ``_atom_site`` loop of mmCIF text into a :class:`Structure`.

    Author numbering (``auth_asym_id``, ``auth_seq_id``) is preferred
    over label numbering so residue identifiers match the PDB format.
    """
    residues: List[Residue] = []
    seen = set()
    col_names: List[str] = []
    in_atom_site = False
    first_model: Optional[str] = None

    for lineno, line in enumerate(text.splitlines(), start=1):
        if line.startswith("_atom_site."):
            in_atom_site = True
            col_names.append(line.strip().split(".", 1)[1])
            continue
        if in_atom_site and (line.startswith("_") or line.startswith("#")
                             or line.startswith("loop_")):
            in_atom_site = False
            if line.startswith("loop_"):
                col_names = []
            continue
        if not (in_atom_site and line.startswith("ATOM")):
            continue

        parts = line.split()
        if len(parts) < len(col_names):
            continue
        record = dict(zip(col_names, parts))
        if record.get("label_atom_id", "").strip('"') != "CA":
            continue

        model = record.get("pdbx_PDB_model_num")
        if model is not None:
            if first_model is None:
                first_model = model
            elif model != first_model:
                break

        chain = _first(record, "auth_asym_id", "label_asym_id")
        insert = _first(record, "pdbx_PDB_ins_code")
        try:
            resnum = int(_first(record, "auth_seq_id", "label_seq_id",
                                default="0"))
            position = (float(record["Cartn_x"]), float(record["Cartn_y"]),
                        float(record["Cartn_z"]))
        except (ValueError, KeyError):
            raise ValueError(
                f"Malformed _atom_site record at line {lineno}: "
                f"{line.rstrip()!r}")
        key = (chain, resnum, insert)
        if key in seen:
            continue
        seen.add(key)
        residues.append(Residue(chain, resnum, insert, position))

    return Structure(code, _split_chains(residues))


# ═══════════════════════════════════════════════════════════════════
# Dispatch
# ═══════════════════════════════════════════════════════════════════

_MMCIF_SUFFIXES = (".cif", ".mmcif")


def parse_structure_text(
    text: str,
    code: str = "",
    fmt: Optional[str] = None,
) -> Structure:
    """Parse *text* as ``"pdb"`` or ``"mmcif"``; sniff when *fmt* is None."""
    if fmt is None:
        fmt = "mmcif" if text.lstrip().startswith("data_") else "pdb"
    if fmt == "mmcif":
        return parse_mmcif_text(text, code)
    if fmt == "pdb":
        return parse_pdb_text(text, code)
    raise ValueError(f"Unknown structure format {fmt!r}")


def read_structure(path, code: Optional[str] = None) -> Structure:
    """Read a structure file from disk.

    Parameters
    ----------
    path : str or Path
        PDB or mmCIF file.  mmCIF is chosen by suffix or by content.
    code : str, optional
        Structure identifier; defaults to :func:`pdb_code_from_filename`.

    Raises
    ------
    OSError
        If the file cannot be read.
    ValueError
        If coordinates cannot be parsed.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8", errors="replace")
    if code is None:
        code = pdb_code_from_filename(path.name)
    fmt = "mmcif" if path.suffix.lower() in _MMCIF_SUFFIXES else None
    return parse_structure_text(text, code, fmt)


def pdb_code_from_filename(filename) -> str:
    """Derive a structure code from a file name.

    >>> pdb_code_from_filename("/data/pdb/pdb1abc.ent")
    '1abc'
    >>> pdb_code_from_filename("12e8.pdb")
    '12e8'
    """
    stem = Path(str(filename)).name.split(".", 1)[0]
    if stem.lower().startswith("pdb") and len(stem) > 3:
        stem = stem[3:]
    return stem
