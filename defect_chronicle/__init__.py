"""
Defect Chronicle - Ground-Truth Bug Labels Across Releases
==========================================================

Reconstructs which methods were buggy in each historical release of a
project and writes leak-free, walk-forward training/testing datasets.

Key insight: issue trackers record when a bug was reported and fixed, not
when it was introduced. The injected version is estimated with Proportion,
and the fixing commits' diffs point at the exact methods to label.
"""

from .config import (
    REFERENCE_PROJECTS,
    PROPORTION_THRESHOLD,
    WALK_FORWARD_FRACTION,
    SOURCE_EXTENSIONS,
)

from .timeline import (
    Commit,
    Edit,
    FileDiff,
    Release,
    Ticket,
    CodeClass,
    CodeMethod,
    fetch_version,
    reindex_releases,
)

from .tickets import (
    fix_inconsistent_tickets,
    link_tickets_to_commits,
)

from .proportion import (
    ColdStartError,
    ProportionEstimator,
    cold_start_proportion,
    compute_p,
)

from .labeling import BugLabeler, spans_overlap
from .walk_forward import WalkForward, WalkState
from .jira import JiraClient
from .vcs import GitBackend
from .dataset import CsvDatasetWriter
from .pipeline import build_datasets, prepare_tickets

__version__ = "0.1.0"

__all__ = [
    # Config
    "REFERENCE_PROJECTS",
    "PROPORTION_THRESHOLD",
    "WALK_FORWARD_FRACTION",
    "SOURCE_EXTENSIONS",
    # Timeline
    "Commit",
    "Edit",
    "FileDiff",
    "Release",
    "Ticket",
    "CodeClass",
    "CodeMethod",
    "fetch_version",
    "reindex_releases",
    # Tickets
    "fix_inconsistent_tickets",
    "link_tickets_to_commits",
    # Proportion
    "ColdStartError",
    "ProportionEstimator",
    "cold_start_proportion",
    "compute_p",
    # Labeling
    "BugLabeler",
    "spans_overlap",
    "WalkForward",
    "WalkState",
    # Collaborators
    "JiraClient",
    "GitBackend",
    "CsvDatasetWriter",
    # Pipeline
    "build_datasets",
    "prepare_tickets",
]
