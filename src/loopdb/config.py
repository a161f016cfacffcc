"""Run-level scan settings."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from .thresholds import (
    DEFAULT_REFERENCE,
    DEFAULT_SD_MULTIPLIER,
    ReferenceDistances,
    ThresholdTable,
    read_table,
)

__all__ = ["ScanSettings"]


@dataclass(frozen=True)
class ScanSettings:
    """Parameters shared by every structure in a run.

    Parameters
    ----------
    min_length, max_length : int
        Loop-length bounds; 0 leaves that side unbounded.
    sd_multiplier : float
        ``k`` in the default bands ``mean ± k·sd``.
    table_path : Path, optional
        Distance-table file overriding the default bands.
    strict_table : bool
        Reject malformed distance-table lines instead of reading 0.0.
    """
    min_length: int = 0
    max_length: int = 0
    sd_multiplier: float = DEFAULT_SD_MULTIPLIER
    table_path: Optional[Path] = None
    strict_table: bool = False

    def __post_init__(self):
        if self.min_length < 0:
            raise ValueError(
                f"min_length must be non-negative, got {self.min_length}")
        if self.max_length < 0:
            raise ValueError(
                f"max_length must be non-negative, got {self.max_length}")
        if self.min_length and self.max_length \
                and self.max_length < self.min_length:
            raise ValueError(
                f"max_length ({self.max_length}) is below min_length "
                f"({self.min_length})")
        if self.sd_multiplier < 0:
            raise ValueError(
                f"sd_multiplier must be non-negative, got "
                f"{self.sd_multiplier}")
        if self.table_path is not None:
            object.__setattr__(self, "table_path", Path(self.table_path))

    def with_overrides(self, **changes) -> "ScanSettings":
        """Return a copy with selected fields changed."""
        return replace(self, **changes)

    def build_table(
        self,
        reference: ReferenceDistances = DEFAULT_REFERENCE,
    ) -> ThresholdTable:
        """Construct the run's threshold table.

        Starts from ``mean ± k·sd`` of *reference*; a configured distance
        table is then read over it.
        """
        table = ThresholdTable.from_reference(reference, self.sd_multiplier)
        if self.table_path is not None:
            table = read_table(self.table_path, table,
                               strict=self.strict_table)
        return table
