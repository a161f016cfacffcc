"""Tests for the structure readers.

Covers:
1. PDB text — CA selection, alternate locations, models, chain splits
2. mmCIF text — _atom_site loop parsing
3. Files and codes — read_structure, pdb_code_from_filename
"""

import numpy as np
import pytest

from loopdb.structure import (
    Chain,
    Residue,
    Structure,
    parse_mmcif_text,
    parse_pdb_text,
    parse_structure_text,
    pdb_code_from_filename,
    read_structure,
)


def atom_line(serial, name, resnum, x, y=0.0, z=0.0, chain="H",
              insert="", altloc="", resname="GLY", record="ATOM  "):
    return (f"{record}{serial:5d} {name:<4s}{altloc:1s}{resname:3s} "
            f"{chain:1s}{resnum:4d}{insert:1s}   "
            f"{x:8.3f}{y:8.3f}{z:8.3f}  1.00 20.00\n")


def residue_lines(serial, resnum, x, **kw):
    """N, CA, C atoms for one residue; CA at (x, 0, 0)."""
    return (atom_line(serial, " N", resnum, x - 1.0, **kw)
            + atom_line(serial + 1, " CA", resnum, x, **kw)
            + atom_line(serial + 2, " C", resnum, x + 1.0, **kw))


@pytest.fixture
def two_chain_pdb():
    text = "HEADER    IMMUNE SYSTEM\n"
    serial = 1
    for k in range(4):
        text += residue_lines(serial, 10 + k, 3.8 * k, chain="L")
        serial += 3
    text += "TER\n"
    for k in range(3):
        text += residue_lines(serial, 92 + k, 3.8 * k, chain="H")
        serial += 3
    text += "END\n"
    return text


# ═══════════════════════════════════════════════════════════════════
# 1. PDB text
# ═══════════════════════════════════════════════════════════════════

class TestParsePdb:

    def test_only_ca_atoms_kept(self, two_chain_pdb):
        s = parse_pdb_text(two_chain_pdb, code="test")
        assert s.n_residues == 7

    def test_chains_split_on_label_change(self, two_chain_pdb):
        s = parse_pdb_text(two_chain_pdb)
        assert [c.label for c in s.chains] == ["L", "H"]
        assert [len(c) for c in s.chains] == [4, 3]

    def test_positions_and_ids(self, two_chain_pdb):
        s = parse_pdb_text(two_chain_pdb)
        h = s.chain("H")
        assert h[0].resid == "H92"
        assert h[2].position == pytest.approx((7.6, 0.0, 0.0))

    def test_code(self, two_chain_pdb):
        assert parse_pdb_text(two_chain_pdb, code="12e8").code == "12e8"

    def test_insertion_codes(self):
        text = (atom_line(1, " CA", 100, 0.0)
                + atom_line(2, " CA", 100, 3.8, insert="A")
                + atom_line(3, " CA", 100, 7.6, insert="B")
                + atom_line(4, " CA", 101, 11.4))
        ids = [r.resid for r in parse_pdb_text(text).chains[0]]
        assert ids == ["H100", "H100A", "H100B", "H101"]

    def test_first_alternate_location_wins(self):
        text = (atom_line(1, " CA", 1, 0.0, altloc="A")
                + atom_line(2, " CA", 1, 9.0, altloc="B")
                + atom_line(3, " CA", 2, 3.8))
        chain = parse_pdb_text(text).chains[0]
        assert len(chain) == 2
        assert chain[0].position[0] == pytest.approx(0.0)

    def test_hetatm_ignored(self):
        text = (atom_line(1, " CA", 1, 0.0)
                + atom_line(2, "CA", 2, 3.8, resname=" CA",
                            record="HETATM"))
        assert parse_pdb_text(text).n_residues == 1

    def test_first_model_only(self):
        text = ("MODEL        1\n"
                + atom_line(1, " CA", 1, 0.0)
                + atom_line(2, " CA", 2, 3.8)
                + "ENDMDL\nMODEL        2\n"
                + atom_line(1, " CA", 1, 50.0)
                + atom_line(2, " CA", 2, 53.8)
                + "ENDMDL\n")
        s = parse_pdb_text(text)
        assert s.n_residues == 2
        assert s.chains[0][0].position[0] == pytest.approx(0.0)

    def test_malformed_coordinates_raise(self):
        bad = atom_line(1, " CA", 1, 0.0)
        bad = bad[:30] + "   x.xxx" + bad[38:]
        with pytest.raises(ValueError, match="Malformed ATOM record"):
            parse_pdb_text(bad)

    def test_empty_text(self):
        s = parse_pdb_text("")
        assert s.chains == ()
        assert s.n_residues == 0

    def test_same_label_after_other_chain_is_new_chain(self):
        text = (atom_line(1, " CA", 1, 0.0, chain="A")
                + atom_line(2, " CA", 1, 0.0, chain="B")
                + atom_line(3, " CA", 2, 3.8, chain="A"))
        s = parse_pdb_text(text)
        assert [c.label for c in s.chains] == ["A", "B", "A"]


class TestChain:

    def test_coords_shape_and_readonly(self):
        chain = Chain.from_coords([[0, 0, 0], [3, 0, 0], [3, 4, 0]])
        assert chain.coords.shape == (3, 3)
        with pytest.raises(ValueError):
            chain.coords[0, 0] = 1.0

    def test_step_lengths_sq(self):
        chain = Chain.from_coords([[0, 0, 0], [3, 0, 0], [3, 4, 0]])
        np.testing.assert_allclose(chain.step_lengths_sq, [9.0, 16.0])

    def test_from_coords_numbering(self):
        chain = Chain.from_coords(np.zeros((3, 3)), label="H",
                                  first_resnum=92)
        assert [r.resid for r in chain] == ["H92", "H93", "H94"]

    def test_index_of(self):
        chain = Chain.from_coords(np.zeros((3, 3)), label="H",
                                  first_resnum=92)
        assert chain.index_of("H93") == 1
        assert chain.index_of("H99") is None

    def test_empty_chain(self):
        chain = Chain("A", ())
        assert len(chain) == 0
        assert chain.coords.shape == (0, 3)
        assert chain.step_lengths_sq.shape == (0,)

    def test_residue_is_frozen(self):
        r = Residue("H", 95, "", (0.0, 0.0, 0.0))
        with pytest.raises(AttributeError):
            r.resnum = 96


# ═══════════════════════════════════════════════════════════════════
# 2. mmCIF text
# ═══════════════════════════════════════════════════════════════════

MMCIF_TEXT = """\
data_TEST
#
loop_
_atom_site.group_PDB
_atom_site.id
_atom_site.label_atom_id
_atom_site.label_alt_id
_atom_site.label_comp_id
_atom_site.label_asym_id
_atom_site.label_seq_id
_atom_site.pdbx_PDB_ins_code
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
_atom_site.auth_seq_id
_atom_site.auth_asym_id
_atom_site.pdbx_PDB_model_num
ATOM 1 N  . GLY A 1 ? -1.000 0.000 0.000 92 H 1
ATOM 2 CA . GLY A 1 ? 0.000 0.000 0.000 92 H 1
ATOM 3 CA . ALA A 2 ? 3.800 0.000 0.000 93 H 1
ATOM 4 CA . SER A 3 A 7.600 0.000 0.000 93 H 1
HETATM 5 CA . CA B . ? 9.000 9.000 9.000 . H 1
ATOM 6 CA . GLY C 1 ? 1.000 1.000 1.000 10 L 1
ATOM 7 CA . GLY A 1 ? 50.000 0.000 0.000 92 H 2
#
"""


class TestParseMmcif:

    def test_author_numbering_and_chains(self):
        s = parse_mmcif_text(MMCIF_TEXT, code="test")
        assert [c.label for c in s.chains] == ["H", "L"]
        assert [r.resid for r in s.chains[0]] == ["H92", "H93", "H93A"]

    def test_first_model_only(self):
        s = parse_mmcif_text(MMCIF_TEXT)
        assert s.n_residues == 4

    def test_positions(self):
        s = parse_mmcif_text(MMCIF_TEXT)
        assert s.chains[0][1].position == pytest.approx((3.8, 0.0, 0.0))

    def test_sniffed_by_content(self):
        s = parse_structure_text(MMCIF_TEXT)
        assert s.n_residues == 4

    def test_unknown_format_raises(self):
        with pytest.raises(ValueError):
            parse_structure_text("", fmt="xyz")


# ═══════════════════════════════════════════════════════════════════
# 3. Files and codes
# ═══════════════════════════════════════════════════════════════════

class TestFiles:

    def test_read_structure_derives_code(self, tmp_path, two_chain_pdb):
        path = tmp_path / "pdb12e8.ent"
        path.write_text(two_chain_pdb)
        s = read_structure(path)
        assert isinstance(s, Structure)
        assert s.code == "12e8"
        assert len(s.chains) == 2

    def test_read_structure_explicit_code(self, tmp_path, two_chain_pdb):
        path = tmp_path / "x.pdb"
        path.write_text(two_chain_pdb)
        assert read_structure(path, code="abcd").code == "abcd"

    def test_read_mmcif_by_suffix(self, tmp_path):
        path = tmp_path / "1abc.cif"
        path.write_text(MMCIF_TEXT)
        assert read_structure(path).n_residues == 4

    def test_missing_file_raises_oserror(self, tmp_path):
        with pytest.raises(OSError):
            read_structure(tmp_path / "nope.pdb")

    @pytest.mark.parametrize("name,expected", [
        ("pdb1abc.ent", "1abc"),
        ("/data/pdb/pdb12e8.ent", "12e8"),
        ("12e8.pdb", "12e8"),
        ("1ABC.cif.gz", "1ABC"),
        ("pdb", "pdb"),
        ("model", "model"),
    ])
    def test_pdb_code_from_filename(self, name, expected):
        assert pdb_code_from_filename(name) == expected
