"""Shared fixtures: synthetic Cα-only PDB files."""

import pytest

from loopdb.geometry import Matrix3
from loopdb.thresholds import ThresholdTable


def ca_line(serial, chain, resnum, xyz, insert=""):
    x, y, z = xyz
    return (f"ATOM  {serial:5d}  CA  GLY {chain:1s}{resnum:4d}{insert:1s}   "
            f"{x:8.3f}{y:8.3f}{z:8.3f}  1.00 20.00           C\n")


def pdb_text(chains, first_resnum=1, spacing=3.8):
    """PDB text of straight chains; *chains* maps label -> residue count."""
    lines, serial = [], 1
    for label, n in chains.items():
        for k in range(n):
            lines.append(ca_line(serial, label, first_resnum + k,
                                 (spacing * k, 0.0, 0.0)))
            serial += 1
        lines.append("TER\n")
    lines.append("END\n")
    return "".join(lines)


@pytest.fixture
def wide_table():
    """Bands wide enough to accept any intact window."""
    return ThresholdTable(Matrix3.filled(0.0), Matrix3.filled(1000.0),
                          name="wide")


@pytest.fixture
def pdb_dir(tmp_path):
    """Directory with two readable structures, a bad file and a dotfile."""
    d = tmp_path / "pdb"
    d.mkdir()
    (d / "pdb1abc.ent").write_text(pdb_text({"H": 9}))
    (d / "pdb2xyz.ent").write_text(pdb_text({"H": 7, "L": 5}))
    (d / "pdb3bad.ent").write_text(
        ca_line(1, "H", 1, (0.0, 0.0, 0.0))[:30] + "   x.xxx\n")
    (d / ".hidden").write_text(pdb_text({"H": 9}))
    (d / "sub").mkdir()
    return d
