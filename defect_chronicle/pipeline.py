"""
End-to-end dataset construction for one project.
"""

import logging
from pathlib import Path

from .config import OUTPUT_DIR, REFERENCE_PROJECTS, REPO_CACHE_DIR, WALK_FORWARD_FRACTION
from .dataset import CsvDatasetWriter
from .history import HistoryMetrics
from .jira import JiraClient
from .labeling import BugLabeler
from .proportion import ColdStartError, ProportionEstimator, cold_start_proportion
from .source import load_release_classes
from .tickets import fix_inconsistent_tickets, link_tickets_to_commits, sort_by_resolution
from .timeline import Release, Ticket, associate_commits, drop_releases_without_commits
from .vcs import GitBackend
from .walk_forward import WalkForward, loop_limit

logger = logging.getLogger(__name__)


def prepare_tickets(tickets: list[Ticket], releases: list[Release], p_cold_start: float) -> list[Ticket]:
    """Filter, estimate missing IVs in resolution order, then filter again"""
    trusted = sort_by_resolution(fix_inconsistent_tickets(tickets, releases))
    estimated = ProportionEstimator(p_cold_start).estimate(trusted, releases)
    return fix_inconsistent_tickets(estimated, releases)


def reference_panel(project: str, reference_projects: list[str] = None) -> list[str]:
    """Cold-start panel without the target project, whose own tickets would leak the future"""
    panel = [p for p in (reference_projects or REFERENCE_PROJECTS) if p.upper() != project.upper()]
    if not panel:
        raise ColdStartError(f"No reference project other than {project} in the cold-start panel")
    return panel


def build_datasets(
    project: str,
    repo_location: str,
    output_dir: Path = OUTPUT_DIR,
    reference_projects: list[str] = None,
    fraction: float = WALK_FORWARD_FRACTION,
    source=None,
    backend=None,
    sink=None,
    p_cold_start: float = None,
) -> dict:
    """
    Build the walk-forward training/testing sets of a project.

    Args:
        project: issue-tracker project key, e.g. 'AVRO'
        repo_location: local checkout path or clone URL
        output_dir: root directory for the CSV files
        reference_projects: cold-start panel (defaults to REFERENCE_PROJECTS)
        fraction: share of the release timeline to walk
        source, backend, sink: collaborators, built from the arguments when omitted
        p_cold_start: precomputed cold-start proportion

    Raises:
        ColdStartError: the reference panel, without the project itself, yielded
            no proportion sample
    """
    print(f"\nProcessing: {project}", flush=True)

    if source is None:
        source = JiraClient(project)

    # Cold start comes first: without it no IV can be estimated
    if p_cold_start is None:
        print("  Computing cold-start proportion...", flush=True)
        p_cold_start = cold_start_proportion(reference_panel(project, reference_projects))

    releases = source.get_releases()
    print(f"  Releases in tracker: {len(releases)}", flush=True)

    if backend is None:
        backend = GitBackend.from_location(repo_location, REPO_CACHE_DIR)
    commits = backend.all_commits()
    associate_commits(releases, commits)
    releases = drop_releases_without_commits(releases)
    print(f"  Releases with commits: {len(releases)}", flush=True)

    tickets = prepare_tickets(source.fetch_tickets(releases), releases, p_cold_start)
    link_tickets_to_commits(tickets, commits)
    print(f"  Consistent tickets: {len(tickets)}", flush=True)

    if sink is None:
        sink = CsvDatasetWriter(project, output_dir)
    sink.write_release_list(releases)
    sink.write_ticket_summary(tickets)

    # Only releases the walk forward can reach need code snapshots
    head = releases[:max(loop_limit(len(releases), fraction), 1)]
    print(f"  Extracting classes and methods for {len(head)} releases...", flush=True)
    for release in head:
        load_release_classes(backend, release)
    sink.write_method_list(head)

    print("  Computing historical metrics...", flush=True)
    HistoryMetrics(backend).compute(head)

    labeler = BugLabeler(backend)
    report = WalkForward(releases, tickets, labeler, sink, fraction).run()

    # Full dataset with every ticket's labels, for analysis outside the walk forward
    labeler.label(head, tickets)
    try:
        sink.write_full_dataset(head)
    except (OSError, ValueError) as e:
        logger.error("Could not write full dataset: %s", e)

    print(f"  Walk forward: {len(report.completed)} iterations written, {len(report.skipped)} skipped", flush=True)

    return {
        'project': project,
        'p_cold_start': p_cold_start,
        'releases': releases,
        'tickets': tickets,
        'report': report,
    }
