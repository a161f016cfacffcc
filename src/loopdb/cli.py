"""Command-line entry points.

``loopdb`` builds a database of CDR-H3-like loops::

    loopdb [-m MIN] [-x MAX] [-t TABLE] pdbdir [out.db]
    loopdb -p [-m MIN] [-x MAX] [-t TABLE] [in.pdb [out.db]]
    loopdb --rcsb [-o out.db] 12E8 1A2Y ...

``loopdb-reference`` derives a distance table from numbered antibody
structures::

    loopdb-reference [-c H] [-k 2.0] [-o h3.dist] abs/*.pdb
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import ScanSettings
from .reference import collect_takeoffs, reference_from_matrices
from .report import MatchWriter
from .runner import BuildReport, LoopDatabaseBuilder, iter_structure_files
from .structure import parse_structure_text, pdb_code_from_filename
from .thresholds import (
    DEFAULT_SD_MULTIPLIER,
    ThresholdTable,
    format_table,
    write_table,
)

logger = logging.getLogger(__name__)

__all__ = ["main", "reference_main"]


_DESCRIPTION = """\
Reads a directory of PDB files and identifies stretches that match the
takeoff region distances for CDR-H3 loops (i.e. H92-H94 with H103-H105).
Output has one line per match: PDB code, first and last residue of the
takeoff region, loop length (residues between the takeoff regions) and
the 9 distances n0-c0, n0-c1, n0-c2, n1-c0, n1-c1, n1-c2, n2-c0, n2-c1,
n2-c2.
"""


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else (
        logging.WARNING if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loopdb",
        description=_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "inputs", nargs="*", metavar="INPUT",
        help="pdbdir [out.db]; with -p: [in.pdb [out.db]]; "
             "with --rcsb: PDB ids")
    parser.add_argument(
        "-m", "--min-length", type=int, default=0,
        help="minimum loop length (0 = no limit)")
    parser.add_argument(
        "-x", "--max-length", type=int, default=0,
        help="maximum loop length (0 = no limit)")
    parser.add_argument(
        "-t", "--table", type=Path, default=None,
        help="distance table overriding the default ranges: nine "
             "'min max' lines for n0-c0, n0-c1, ... n2-c2")
    parser.add_argument(
        "-k", "--sd-multiplier", type=float, default=DEFAULT_SD_MULTIPLIER,
        help="standard deviations either side of the mean for the default "
             "ranges (default: %(default)s)")
    parser.add_argument(
        "--strict-table", action="store_true",
        help="fail on malformed distance-table lines instead of reading "
             "their band as 0.0 0.0")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-p", "--pdb", action="store_true",
        help="input is a single PDB file (or standard input)")
    mode.add_argument(
        "--rcsb", action="store_true",
        help="inputs are PDB ids downloaded from the RCSB")
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="output database (default: standard output)")
    parser.add_argument(
        "--dump-table", type=Path, default=None, metavar="PATH",
        help="write the active distance table to PATH")
    parser.add_argument(
        "--report", type=Path, default=None, metavar="PATH",
        help="save a JSON run report to PATH")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-q", "--quiet", action="store_true")
    return parser


def _split_inputs(parser, args):
    """Resolve (input, output) from the positional arguments."""
    inputs: List[str] = list(args.inputs)
    if args.rcsb:
        if not inputs:
            parser.error("--rcsb needs at least one PDB id")
        return inputs, args.output
    if args.pdb:
        if len(inputs) > 2:
            parser.error("-p takes at most an input file and an output file")
    else:
        if not inputs:
            parser.error("a PDB directory is required without -p")
        if len(inputs) > 2:
            parser.error("expected pdbdir [out.db]")
    source = inputs[0] if inputs else None
    output = args.output
    if output is None and len(inputs) == 2:
        output = Path(inputs[1])
    return source, output


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)

    try:
        settings = ScanSettings(
            min_length=args.min_length,
            max_length=args.max_length,
            sd_multiplier=args.sd_multiplier,
            table_path=args.table,
            strict_table=args.strict_table,
        )
        builder = LoopDatabaseBuilder(settings)
    except ValueError as exc:
        parser.error(str(exc))

    if args.dump_table is not None:
        write_table(builder.thresholds, args.dump_table)
        logger.info("Wrote distance table %s", args.dump_table)
        if not args.inputs and not (args.pdb or args.rcsb):
            return 0

    source, output = _split_inputs(parser, args)

    with contextlib.ExitStack() as stack:
        if output is not None:
            out = stack.enter_context(open(output, "w", encoding="utf-8"))
        else:
            out = sys.stdout
        writer = MatchWriter(out)

        if args.rcsb:
            report = builder.run_pdb_ids(source, writer)
        elif args.pdb:
            try:
                if source is None:
                    text = sys.stdin.read()
                    code = ""
                else:
                    text = Path(source).read_text(encoding="utf-8",
                                                  errors="replace")
                    code = pdb_code_from_filename(source)
                structure = parse_structure_text(text, code)
            except (OSError, ValueError) as exc:
                logger.error("Unable to read %s: %s", source or "stdin", exc)
                return 1
            result = builder.process_structure(
                structure, writer, source=source or "stdin")
            report = BuildReport([result],
                                 table_name=builder.thresholds.name,
                                 total_time_s=result.time_s)
        else:
            try:
                report = builder.run_directory(source, writer)
            except NotADirectoryError as exc:
                logger.error("%s", exc)
                return 1
        writer.flush()

    logger.debug("%s", report.summary())
    if args.report is not None:
        report.save(args.report)
    return 0


# ═══════════════════════════════════════════════════════════════════
# loopdb-reference
# ═══════════════════════════════════════════════════════════════════

def build_reference_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loopdb-reference",
        description="Measure CDR-H3 takeoff distances (H92-H94 with "
                    "H103-H105) in Chothia-numbered antibody structures and "
                    "write a distance table of mean ± k·sd.",
    )
    parser.add_argument(
        "inputs", nargs="+", metavar="INPUT",
        help="numbered structure files or directories of them")
    parser.add_argument(
        "-c", "--chain", default="H", help="heavy chain label (default: H)")
    parser.add_argument(
        "-k", "--sd-multiplier", type=float, default=DEFAULT_SD_MULTIPLIER,
        help="standard deviations either side of the mean "
             "(default: %(default)s)")
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="distance table to write (default: standard output)")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-q", "--quiet", action="store_true")
    return parser


def reference_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_reference_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)
    if args.sd_multiplier < 0:
        parser.error("--sd-multiplier must be non-negative")

    paths: List[Path] = []
    for item in args.inputs:
        p = Path(item)
        paths.extend(iter_structure_files(p) if p.is_dir() else [p])

    matrices = collect_takeoffs(paths, chain=args.chain)
    if not matrices:
        logger.error("No complete takeoff regions found in %d files",
                     len(paths))
        return 1

    reference = reference_from_matrices(matrices, name="measured")
    table = ThresholdTable.from_reference(reference, args.sd_multiplier)
    logger.info("Measured %d takeoff regions from %d files",
                reference.n_samples, len(paths))

    if args.output is not None:
        write_table(table, args.output)
    else:
        sys.stdout.write(format_table(table))
    return 0


if __name__ == "__main__":
    sys.exit(main())
