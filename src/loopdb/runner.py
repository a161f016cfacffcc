"""Batch driver: build a loop database from many structures.

Each structure is read, scanned chain by chain, and its matches are
written to the sink before the next structure is touched.  A structure
that cannot be read or parsed is recorded as an error and the run moves
on to the next one.

Quick start
-----------
>>> import sys
>>> from loopdb.config import ScanSettings
>>> from loopdb.report import MatchWriter
>>> from loopdb.runner import LoopDatabaseBuilder
>>>
>>> builder = LoopDatabaseBuilder(ScanSettings(min_length=5, max_length=20))
>>> report = builder.run_directory("pdb/", MatchWriter(sys.stdout))
>>> print(report.summary())

Hooks
-----
:meth:`LoopDatabaseBuilder.run` accepts optional callbacks:

* ``on_file_start(source)`` — called before each structure
* ``on_file_done(source, result)`` — called after each structure
* ``on_error(source, exception)`` — called on failure
"""

from __future__ import annotations

import datetime
import json
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .config import ScanSettings
from .fetch import fetch_structure
from .report import MatchWriter, write_header
from .scanner import MatchRecord, scan_structure
from .structure import Structure, read_structure
from .thresholds import ThresholdTable

logger = logging.getLogger(__name__)

__all__ = [
    "FileResult",
    "BuildReport",
    "LoopDatabaseBuilder",
    "iter_structure_files",
]


# ═══════════════════════════════════════════════════════════════════
# Data types
# ═══════════════════════════════════════════════════════════════════

@dataclass
class FileResult:
    """Outcome of scanning one structure."""
    source: str
    code: str = ""
    n_chains: int = 0
    n_residues: int = 0
    n_matches: int = 0
    time_s: float = 0.0
    error: Optional[str] = None
    separations: Counter = field(default_factory=Counter)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BuildReport:
    """Per-structure results of a database build."""

    results: List[FileResult]
    table_name: str = ""
    timestamp: str = ""
    total_time_s: float = 0.0

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.datetime.now().isoformat()

    @property
    def valid_results(self) -> List[FileResult]:
        return [r for r in self.results if r.ok]

    @property
    def errors(self) -> List[FileResult]:
        return [r for r in self.results if not r.ok]

    @property
    def n_matches(self) -> int:
        return sum(r.n_matches for r in self.valid_results)

    @property
    def separation_counts(self) -> Counter:
        """Matches per loop length across all structures."""
        total: Counter = Counter()
        for r in self.valid_results:
            total.update(r.separations)
        return total

    def summary(self) -> str:
        """Human-readable summary string."""
        lines = [
            f"Loop database build: {self.timestamp}",
            f"{'=' * 55}",
            f"Structures: {len(self.valid_results)} scanned, "
            f"{len(self.errors)} failed",
            f"Matches:    {self.n_matches}",
            f"Table:      {self.table_name}",
            f"Time:       {self.total_time_s:.1f}s",
        ]
        counts = self.separation_counts
        if counts:
            lines.append("")
            lines.append("Matches by loop length:")
            for length in sorted(counts):
                lines.append(f"  {length:>3d}  {counts[length]}")
        if self.errors:
            lines.append("")
            lines.append("Failed:")
            for r in self.errors:
                lines.append(f"  {r.source}: {r.error}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to a JSON-compatible dict."""
        return {
            "timestamp": self.timestamp,
            "table": self.table_name,
            "total_time_s": self.total_time_s,
            "n_matches": self.n_matches,
            "results": [
                {
                    "source": r.source,
                    "code": r.code,
                    "n_chains": r.n_chains,
                    "n_residues": r.n_residues,
                    "n_matches": r.n_matches,
                    "time_s": r.time_s,
                    "error": r.error,
                    "separations": {str(k): v for k, v in
                                    sorted(r.separations.items())},
                }
                for r in self.results
            ],
        }

    def save(self, path) -> None:
        """Save report to JSON file."""
        Path(path).write_text(json.dumps(self.to_dict(), indent=2),
                              encoding="utf-8")


# ═══════════════════════════════════════════════════════════════════
# Input enumeration
# ═══════════════════════════════════════════════════════════════════

def iter_structure_files(directory) -> Iterator[Path]:
    """Yield the non-hidden regular files of *directory*, sorted by name.

    Raises
    ------
    NotADirectoryError
        If *directory* is not a directory.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"Not a directory: {directory}")
    for path in sorted(directory.iterdir()):
        if path.name.startswith("."):
            continue
        if path.is_file():
            yield path


# ═══════════════════════════════════════════════════════════════════
# LoopDatabaseBuilder
# ═══════════════════════════════════════════════════════════════════

class LoopDatabaseBuilder:
    """Scan structures and stream accepted takeoff regions to a writer.

    Parameters
    ----------
    settings : ScanSettings, optional
        Loop-length bounds and threshold configuration.
    thresholds : ThresholdTable, optional
        Explicit table; when omitted it is built from *settings* once.
    """

    def __init__(
        self,
        settings: Optional[ScanSettings] = None,
        thresholds: Optional[ThresholdTable] = None,
    ):
        self.settings = settings or ScanSettings()
        self.thresholds = (thresholds if thresholds is not None
                           else self.settings.build_table())

    def __repr__(self) -> str:
        s = self.settings
        return (f"LoopDatabaseBuilder(min_length={s.min_length}, "
                f"max_length={s.max_length}, table={self.thresholds.name!r})")

    # ── single structure ────────────────────────────────────────

    def scan(self, structure: Structure) -> Iterator[MatchRecord]:
        """Yield the matches of one structure."""
        return scan_structure(
            structure, self.thresholds,
            self.settings.min_length, self.settings.max_length,
        )

    def process_structure(
        self,
        structure: Structure,
        writer: MatchWriter,
        source: str = "",
    ) -> FileResult:
        """Scan *structure*, writing each match as it is found."""
        t0 = time.perf_counter()
        result = FileResult(
            source=source or structure.code,
            code=structure.code,
            n_chains=len(structure.chains),
            n_residues=structure.n_residues,
        )
        for record in self.scan(structure):
            writer.write(record)
            result.n_matches += 1
            result.separations[record.separation] += 1
        result.time_s = round(time.perf_counter() - t0, 3)
        return result

    def process_file(self, path, writer: MatchWriter,
                     code: Optional[str] = None) -> FileResult:
        """Read and scan one structure file.

        Raises
        ------
        OSError, ValueError
            If the file cannot be read or parsed.
        """
        structure = read_structure(path, code=code)
        return self.process_structure(structure, writer, source=str(path))

    # ── batches ─────────────────────────────────────────────────

    def run(
        self,
        sources: Iterable,
        writer: MatchWriter,
        *,
        load: Optional[Callable[[Any], Optional[Structure]]] = None,
        on_file_start: Optional[Callable] = None,
        on_file_done: Optional[Callable] = None,
        on_error: Optional[Callable] = None,
    ) -> BuildReport:
        """Process every source in turn.

        Parameters
        ----------
        sources : iterable
            File paths, or whatever *load* accepts.
        writer : MatchWriter
            Sink for accepted records.
        load : callable, optional
            ``f(source) -> Structure``; defaults to :func:`read_structure`.
            Returning None marks the source as failed.
        on_file_start, on_file_done, on_error : callable, optional
            Progress hooks (see module docstring).

        Returns
        -------
        BuildReport
        """
        load = load or read_structure
        results: List[FileResult] = []
        t_total = time.perf_counter()

        for source in sources:
            name = str(source)
            if on_file_start:
                on_file_start(source)
            logger.info("%s", name)

            try:
                structure = load(source)
                if structure is None:
                    raise ValueError(f"No structure available for {name}")
                result = self.process_structure(structure, writer,
                                                source=name)
                logger.debug("%s: %d chains, %d residues, %d matches",
                             name, result.n_chains, result.n_residues,
                             result.n_matches)
                if on_file_done:
                    on_file_done(source, result)
            except (OSError, ValueError) as exc:
                logger.warning("Skipping %s: %s", name, exc)
                result = FileResult(
                    source=name,
                    error=f"{type(exc).__name__}: {exc}",
                )
                if on_error:
                    on_error(source, exc)

            results.append(result)

        return BuildReport(
            results=results,
            table_name=self.thresholds.name,
            total_time_s=round(time.perf_counter() - t_total, 3),
        )

    def run_directory(
        self,
        directory,
        writer: MatchWriter,
        *,
        header: bool = True,
        **hooks,
    ) -> BuildReport:
        """Process every non-hidden file in *directory*.

        The database header is written first unless *header* is False.
        """
        files = list(iter_structure_files(directory))
        if header:
            write_header(writer.out, str(directory))
        return self.run(files, writer, **hooks)

    def run_pdb_ids(
        self,
        pdb_ids: Iterable[str],
        writer: MatchWriter,
        **hooks,
    ) -> BuildReport:
        """Download each PDB id from RCSB and process it."""
        return self.run(pdb_ids, writer, load=fetch_structure, **hooks)
