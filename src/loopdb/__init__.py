"""loopdb: scan protein structures for CDR-H3-like takeoff regions.

For every chain, every pair of three-residue anchors (N-terminal and
C-terminal) separated by an allowed loop length is tested: the chain must
be unbroken between them and all nine inter-anchor Cα distances must fall
inside a per-cell band.  Accepted regions form a loop database, one line
per match.

The default bands are ``mean ± k·sd`` of the takeoff distances measured
in antibody heavy chains (H92-H94 with H103-H105); a nine-line distance
table may override them.
"""
from .geometry import Matrix3, MAX_CA_CA_DISTANCE_SQ, is_intact, distance_matrix
from .structure import (
    Residue, Chain, Structure,
    parse_pdb_text, parse_mmcif_text, parse_structure_text,
    read_structure, pdb_code_from_filename,
)
from .thresholds import (
    ReferenceDistances, ThresholdTable,
    DEFAULT_REFERENCE, DEFAULT_SD_MULTIPLIER, DEFAULT_TABLE,
    parse_table, read_table, format_table, write_table,
)
from .scanner import (
    WindowPair, iter_windows, Evaluation, evaluate,
    MatchRecord, scan_chain, scan_structure,
)
from .report import (
    format_record, parse_record, read_records, write_header, MatchWriter,
)
from .config import ScanSettings
from .runner import FileResult, BuildReport, LoopDatabaseBuilder
from .reference import (
    measure_takeoff, collect_takeoffs, reference_from_matrices,
)
from .fetch import fetch_structure, fetch_structure_text

__version__ = "1.0.0"

__all__ = [
    # Geometry
    "Matrix3", "MAX_CA_CA_DISTANCE_SQ", "is_intact", "distance_matrix",
    # Structures
    "Residue", "Chain", "Structure",
    "parse_pdb_text", "parse_mmcif_text", "parse_structure_text",
    "read_structure", "pdb_code_from_filename",
    # Thresholds
    "ReferenceDistances", "ThresholdTable",
    "DEFAULT_REFERENCE", "DEFAULT_SD_MULTIPLIER", "DEFAULT_TABLE",
    "parse_table", "read_table", "format_table", "write_table",
    # Scanning
    "WindowPair", "iter_windows", "Evaluation", "evaluate",
    "MatchRecord", "scan_chain", "scan_structure",
    # Output
    "format_record", "parse_record", "read_records", "write_header",
    "MatchWriter",
    # Runs
    "ScanSettings", "FileResult", "BuildReport", "LoopDatabaseBuilder",
    # Reference statistics
    "measure_takeoff", "collect_takeoffs", "reference_from_matrices",
    # RCSB
    "fetch_structure", "fetch_structure_text",
]
