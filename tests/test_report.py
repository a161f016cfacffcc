"""Tests for loop database output."""

import io
import time

import pytest

from loopdb.geometry import Matrix3
from loopdb.report import (
    MatchWriter,
    format_record,
    parse_record,
    read_records,
    write_header,
)
from loopdb.scanner import MatchRecord


def _record(code="12e8", sep=9):
    return MatchRecord(
        structure_id=code,
        n_start="H92",
        c_end="H105",
        separation=sep,
        distances=Matrix3([9.1124, 6.2, 5.3116, 6.5724, 5.4,
                           6.018, 5.7344, 6.655, 8.80149]),
    )


class TestFormatRecord:

    def test_exact_line(self):
        assert format_record(_record()) == (
            "12e8 H92 H105 9 9.112 6.200 5.312 6.572 5.400 6.018 "
            "5.734 6.655 8.801\n")

    def test_thirteen_fields(self):
        assert len(format_record(_record()).split()) == 13

    def test_no_trailing_space(self):
        line = format_record(_record())
        assert line.endswith("8.801\n")
        assert "  " not in line

    def test_insertion_codes_kept(self):
        rec = MatchRecord("1abc", "H100A", "H100K", 3, Matrix3.filled(1.0))
        assert format_record(rec).startswith("1abc H100A H100K 3 1.000 ")


class TestParseRecord:

    def test_parse_formatted_line(self):
        rec = parse_record(format_record(_record()))
        assert rec.structure_id == "12e8"
        assert rec.n_start == "H92"
        assert rec.c_end == "H105"
        assert rec.separation == 9
        assert rec.distances[0, 0] == pytest.approx(9.112)
        assert rec.distances[2, 2] == pytest.approx(8.801)

    def test_wrong_field_count_raises(self):
        with pytest.raises(ValueError, match="13 fields"):
            parse_record("12e8 H92 H105 9 1.0 2.0\n")

    def test_bad_number_raises(self):
        line = format_record(_record()).replace("9.112", "nine")
        with pytest.raises(ValueError):
            parse_record(line)

    def test_read_records_skips_header_and_blanks(self):
        buf = io.StringIO()
        write_header(buf, "/data/pdb")
        buf.write(format_record(_record("1abc")))
        buf.write("\n")
        buf.write(format_record(_record("2xyz", sep=4)))
        buf.seek(0)
        records = list(read_records(buf))
        assert [r.structure_id for r in records] == ["1abc", "2xyz"]
        assert [r.separation for r in records] == [9, 4]

    def test_empty_structure_code_read_back(self):
        buf = io.StringIO()
        writer = MatchWriter(buf)
        writer.write(MatchRecord("", "A1", "A7", 1, Matrix3.filled(1.0)))
        writer.write(_record())
        assert buf.getvalue().startswith(" A1 A7 1 1.000 ")
        buf.seek(0)
        records = list(read_records(buf))
        assert [r.structure_id for r in records] == ["", "12e8"]
        assert records[0].n_start == "A1"
        assert records[0].distances == Matrix3.filled(1.0)


class TestHeader:

    def test_header_lines(self):
        buf = io.StringIO()
        when = 1_000_000_000.0
        write_header(buf, "/data/pdb", when=when)
        lines = buf.getvalue().splitlines()
        assert lines == [
            "#PDBDIR: /data/pdb",
            f"#DATE:   {time.ctime(when)}",
        ]


class TestMatchWriter:

    def test_write_counts(self):
        buf = io.StringIO()
        writer = MatchWriter(buf)
        writer.write(_record())
        assert writer.write_all([_record(), _record()]) == 2
        assert writer.n_written == 3
        assert buf.getvalue().count("\n") == 3

    def test_write_all_generator(self):
        buf = io.StringIO()
        writer = MatchWriter(buf)
        n = writer.write_all(_record(sep=s) for s in range(1, 4))
        writer.flush()
        assert n == 3
        seps = [r.separation for r in read_records(buf.getvalue().splitlines())]
        assert seps == [1, 2, 3]

    def test_repr(self):
        assert "0 records" in repr(MatchWriter(io.StringIO()))
