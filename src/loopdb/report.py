"""Loop database output: record lines, header, and reading back.

Each accepted takeoff region is one line::

    12e8 H92 H105 9 9.112 6.204 5.311 6.572 5.402 6.018 5.734 6.655 8.801

fields being the structure code, the first N-anchor residue, the last
C-anchor residue, the loop length, then the nine distances in row-major
order (``n0-c0, n0-c1, n0-c2, n1-c0, ... n2-c2``) to three decimals.

Databases built from a directory start with a short ``#`` header.
"""

from __future__ import annotations

import time
from typing import IO, Iterable, Iterator, Optional

from .geometry import Matrix3
from .scanner import MatchRecord

__all__ = [
    "format_record",
    "parse_record",
    "write_header",
    "read_records",
    "MatchWriter",
]


def format_record(record: MatchRecord) -> str:
    """Render one record as a database line (newline-terminated)."""
    fields = [
        record.structure_id,
        record.n_start,
        record.c_end,
        str(record.separation),
    ]
    fields.extend(f"{d:.3f}" for d in record.distances.flat())
    return " ".join(fields) + "\n"


def parse_record(line: str) -> MatchRecord:
    """Parse a database line back into a :class:`MatchRecord`.

    Fields are single-space separated; a line starting with the separator
    has an empty structure code (input read from standard input).

    Raises
    ------
    ValueError
        If the line does not have 13 fields of the right types.
    """
    fields = line.rstrip("\r\n").split(" ")
    if len(fields) != 13:
        raise ValueError(
            f"Expected 13 fields in loop database line, got "
            f"{len(fields)}: {line.rstrip()!r}")
    return MatchRecord(
        structure_id=fields[0],
        n_start=fields[1],
        c_end=fields[2],
        separation=int(fields[3]),
        distances=Matrix3(float(v) for v in fields[4:]),
    )


def read_records(lines: Iterable[str]) -> Iterator[MatchRecord]:
    """Yield records from database lines, skipping comments and blanks."""
    for line in lines:
        if not line.strip() or line.startswith("#"):
            continue
        yield parse_record(line)


def write_header(out: IO[str], source: str,
                 when: Optional[float] = None) -> None:
    """Write the ``#PDBDIR`` / ``#DATE`` header."""
    out.write(f"#PDBDIR: {source}\n")
    out.write(f"#DATE:   {time.ctime(when)}\n")


class MatchWriter:
    """Append-only sink writing records to a text stream as they arrive.

    Parameters
    ----------
    out : text stream
        Destination, e.g. an open file or ``sys.stdout``.
    """

    def __init__(self, out: IO[str]):
        self.out = out
        self.n_written = 0

    def write(self, record: MatchRecord) -> None:
        self.out.write(format_record(record))
        self.n_written += 1

    def write_all(self, records: Iterable[MatchRecord]) -> int:
        """Write every record; return how many were written."""
        n = 0
        for record in records:
            self.write(record)
            n += 1
        return n

    def flush(self) -> None:
        self.out.flush()

    def __repr__(self) -> str:
        return f"MatchWriter({self.n_written} records)"
