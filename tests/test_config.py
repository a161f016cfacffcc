"""Tests for ScanSettings."""

from pathlib import Path

import pytest

from loopdb.config import ScanSettings
from loopdb.geometry import Matrix3
from loopdb.thresholds import (
    DEFAULT_TABLE,
    ReferenceDistances,
    ThresholdTable,
)


class TestValidation:

    def test_defaults(self):
        s = ScanSettings()
        assert (s.min_length, s.max_length) == (0, 0)
        assert s.sd_multiplier == 2.0
        assert s.table_path is None
        assert not s.strict_table

    @pytest.mark.parametrize("kwargs", [
        {"min_length": -1},
        {"max_length": -2},
        {"sd_multiplier": -0.5},
        {"min_length": 10, "max_length": 5},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ScanSettings(**kwargs)

    def test_min_with_unbounded_max(self):
        assert ScanSettings(min_length=10, max_length=0).min_length == 10

    def test_table_path_coerced(self):
        assert ScanSettings(table_path="h3.dist").table_path == Path("h3.dist")

    def test_frozen(self):
        with pytest.raises(AttributeError):
            ScanSettings().min_length = 3

    def test_with_overrides(self):
        s = ScanSettings(min_length=2)
        t = s.with_overrides(max_length=8)
        assert (t.min_length, t.max_length) == (2, 8)
        assert s.max_length == 0

    def test_with_overrides_validates(self):
        with pytest.raises(ValueError):
            ScanSettings(min_length=5).with_overrides(max_length=3)


class TestBuildTable:

    def test_default(self):
        assert ScanSettings().build_table() == DEFAULT_TABLE

    def test_multiplier(self):
        ref = ReferenceDistances(Matrix3.filled(6.0), Matrix3.filled(1.0))
        table = ScanSettings(sd_multiplier=1.0).build_table(ref)
        assert table.band(1, 1) == (5.0, 7.0)

    def test_table_file_overrides(self, tmp_path):
        path = tmp_path / "h3.dist"
        path.write_text("1.0 2.0\n3.0 4.0\n")
        table = ScanSettings(table_path=path).build_table()
        assert table.band(0, 0) == (1.0, 2.0)
        assert table.band(0, 1) == (3.0, 4.0)
        assert table.band(2, 2) == DEFAULT_TABLE.band(2, 2)
        assert table.name == "h3.dist"

    def test_missing_table_file_falls_back(self, tmp_path):
        table = ScanSettings(table_path=tmp_path / "absent").build_table()
        assert table == DEFAULT_TABLE

    def test_strict_table(self, tmp_path):
        path = tmp_path / "h3.dist"
        path.write_text("7.1 two\n")
        assert ScanSettings(table_path=path).build_table().band(0, 0) \
            == (0.0, 0.0)
        with pytest.raises(ValueError):
            ScanSettings(table_path=path, strict_table=True).build_table()

    def test_returns_threshold_table(self):
        assert isinstance(ScanSettings().build_table(), ThresholdTable)
