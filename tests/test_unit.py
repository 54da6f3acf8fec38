#!/usr/bin/env python3
"""
Unit tests for defect_chronicle: config, timeline and ticket filtering.

Usage:
    python -m pytest tests/test_unit.py -v
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from defect_chronicle.timeline import Commit, Release, Ticket, fetch_version


def make_releases(n):
    """Releases R1..Rn on the first day of consecutive months of 2020"""
    return [
        Release(index=i, name=f'R{i}', date=datetime(2020, i, 1), version_id=str(100 + i))
        for i in range(1, n + 1)
    ]


def make_ticket(key, created, resolved, releases, affected=()):
    return Ticket(
        key=key,
        creation_date=created,
        resolution_date=resolved,
        opening_version=fetch_version(created, releases),
        fixed_version=fetch_version(resolved, releases),
        affected_versions=list(affected),
    )


# =============================================================================
# CONFIG TESTS
# =============================================================================

def test_config_imports():
    """Config module should import without errors"""
    from defect_chronicle.config import (
        REFERENCE_PROJECTS,
        PROPORTION_THRESHOLD,
        WALK_FORWARD_FRACTION,
        SOURCE_EXTENSIONS,
        DATASET_COLUMNS,
    )
    assert len(REFERENCE_PROJECTS) > 0
    assert PROPORTION_THRESHOLD == 5
    assert 0 < WALK_FORWARD_FRACTION <= 1
    assert '.py' in SOURCE_EXTENSIONS
    assert DATASET_COLUMNS[-1] == 'buggy'


def test_test_path_marker():
    """Test code should be recognised so snapshots can skip it"""
    from defect_chronicle.config import TEST_PATH_MARKER

    assert TEST_PATH_MARKER.search("tests/test_core.py")
    assert TEST_PATH_MARKER.search("pkg/test/helpers.py")
    assert TEST_PATH_MARKER.search("pkg/test_parser.py")
    assert TEST_PATH_MARKER.search("pkg/parser_test.py")
    assert not TEST_PATH_MARKER.search("pkg/contest.py")
    assert not TEST_PATH_MARKER.search("pkg/testimony/core.py")


def test_configure_logging_writes_run_log(tmp_path):
    """With a log directory, records also go to run.log"""
    import logging
    from defect_chronicle.logging_config import configure_logging

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(logging.DEBUG, tmp_path / 'logs')
        logging.getLogger('defect_chronicle.pipeline').debug("skipped commit abc123")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.DEBUG
        assert 'skipped commit abc123' in (tmp_path / 'logs' / 'run.log').read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)


# =============================================================================
# TIMELINE TESTS
# =============================================================================

def test_release_equality_by_version_id():
    """Releases are equal when their tracker version ids match"""
    a = Release(index=1, name='1.0', date=datetime(2020, 1, 1), version_id='42')
    b = Release(index=7, name='1.0-renamed', date=datetime(2021, 1, 1), version_id='42')
    c = Release(index=1, name='1.0', date=datetime(2020, 1, 1), version_id='43')

    assert a == b
    assert a != c
    assert len({a, b, c}) == 2


def test_fetch_version():
    """The active release is the first one dated on or after the moment"""
    releases = make_releases(3)

    assert fetch_version(datetime(2019, 12, 31), releases).name == 'R1'
    assert fetch_version(datetime(2020, 2, 1), releases).name == 'R2'
    assert fetch_version(datetime(2020, 2, 1, 0, 1), releases).name == 'R3'
    assert fetch_version(datetime(2020, 3, 2), releases) is None


def test_reindex_releases_contiguous_by_date():
    """Re-indexing sorts by date and numbers releases 1..N"""
    from defect_chronicle.timeline import reindex_releases

    releases = make_releases(5)
    shuffled = [releases[3], releases[0], releases[4], releases[1]]
    reindexed = reindex_releases(shuffled)

    assert [r.name for r in reindexed] == ['R1', 'R2', 'R4', 'R5']
    assert [r.index for r in reindexed] == [1, 2, 3, 4]


def test_associate_commits_and_drop_empty_releases():
    """Commits land in (previous date, date]; empty releases are removed"""
    from defect_chronicle.timeline import associate_commits, drop_releases_without_commits

    releases = make_releases(4)
    commits = [
        Commit('a', 'dev@x.org', datetime(2019, 12, 20)),
        Commit('b', 'dev@x.org', datetime(2020, 1, 1)),        # on R1's date
        Commit('c', 'dev@x.org', datetime(2020, 2, 15)),       # R3 window
        Commit('d', 'dev@x.org', datetime(2020, 3, 10)),       # R4 window
        Commit('e', 'dev@x.org', datetime(2020, 6, 1)),        # after last release
    ]

    associate_commits(releases, commits)
    assert [c.hash for c in releases[0].commits] == ['a', 'b']
    assert releases[1].commits == []
    assert [c.hash for c in releases[2].commits] == ['c']
    assert [c.hash for c in releases[3].commits] == ['d']

    kept = drop_releases_without_commits(releases)
    assert [r.name for r in kept] == ['R1', 'R3', 'R4']
    assert [r.index for r in kept] == [1, 2, 3]


def test_versions_between():
    """Affected versions span [IV, FV)"""
    from defect_chronicle.timeline import versions_between

    releases = make_releases(5)
    assert [r.index for r in versions_between(releases, releases[1], releases[4])] == [2, 3, 4]
    assert versions_between(releases, releases[2], releases[2]) == []


def test_commit_parent():
    """The first parent is the diff base"""
    assert Commit('a', 'x', datetime(2020, 1, 1), parents=('p1', 'p2')).parent == 'p1'
    assert Commit('a', 'x', datetime(2020, 1, 1)).parent is None


# =============================================================================
# TICKET FILTER TESTS
# =============================================================================

def test_filter_trusts_consistent_affected_versions():
    """An AV earlier than creation and OV becomes the injected version"""
    from defect_chronicle.tickets import fix_inconsistent_tickets

    releases = make_releases(5)
    ticket = make_ticket('P-1', datetime(2020, 2, 15), datetime(2020, 4, 10), releases, [releases[1]])
    assert ticket.opening_version.index == 3
    assert ticket.fixed_version.index == 5

    kept = fix_inconsistent_tickets([ticket], releases)

    assert kept == [ticket]
    assert ticket.injected_version.index == 2
    assert [r.index for r in ticket.affected_versions] == [2, 3, 4]


def test_filter_drops_contradictory_affected_versions():
    """AV after creation, or AV equal to OV, cannot be trusted"""
    from defect_chronicle.tickets import fix_inconsistent_tickets

    releases = make_releases(5)
    after_creation = make_ticket('P-1', datetime(2020, 2, 15), datetime(2020, 4, 10), releases, [releases[3]])
    same_as_ov = make_ticket('P-2', datetime(2020, 3, 1), datetime(2020, 4, 10), releases, [releases[2]])

    assert fix_inconsistent_tickets([after_creation, same_as_ov], releases) == []


def test_filter_drops_unresolvable_tickets():
    """Missing OV/FV, OV at the first release and OV after FV are all dropped"""
    from defect_chronicle.tickets import fix_inconsistent_tickets

    releases = make_releases(5)
    no_fv = make_ticket('P-1', datetime(2020, 2, 15), datetime(2021, 1, 1), releases)
    at_first = make_ticket('P-2', datetime(2019, 12, 1), datetime(2020, 3, 10), releases)
    backwards = make_ticket('P-3', datetime(2020, 2, 15), datetime(2020, 4, 10), releases)
    backwards.opening_version, backwards.fixed_version = releases[3], releases[2]
    fine = make_ticket('P-4', datetime(2020, 2, 15), datetime(2020, 4, 10), releases)

    kept = fix_inconsistent_tickets([no_fv, at_first, backwards, fine], releases)

    assert [t.key for t in kept] == ['P-4']
    assert kept[0].injected_version is None


def test_filter_drops_injected_after_opening():
    """An IV later than OV breaks IV <= OV <= FV"""
    from defect_chronicle.tickets import fix_inconsistent_tickets

    releases = make_releases(5)
    ticket = make_ticket('P-1', datetime(2020, 1, 15), datetime(2020, 4, 10), releases)
    ticket.injected_version = releases[3]

    assert fix_inconsistent_tickets([ticket], releases) == []


def test_filter_returns_new_list_and_keeps_invariant():
    """The input list is left as is; every survivor satisfies IV <= OV <= FV"""
    from defect_chronicle.tickets import fix_inconsistent_tickets

    releases = make_releases(6)
    tickets = [
        make_ticket('P-1', datetime(2020, 2, 15), datetime(2020, 5, 10), releases, [releases[0]]),
        make_ticket('P-2', datetime(2020, 3, 15), datetime(2020, 5, 10), releases, [releases[4]]),
        make_ticket('P-3', datetime(2020, 4, 15), datetime(2020, 5, 20), releases, [releases[1], releases[2]]),
        make_ticket('P-4', datetime(2019, 4, 15), datetime(2020, 5, 20), releases),
    ]

    kept = fix_inconsistent_tickets(tickets, releases)

    assert len(tickets) == 4
    assert [t.key for t in kept] == ['P-1', 'P-3']
    for t in kept:
        assert t.injected_version.index <= t.opening_version.index <= t.fixed_version.index
        assert [r.index for r in t.affected_versions] == list(range(t.injected_version.index, t.fixed_version.index))


def test_filter_second_pass_is_stable():
    """Running the filter again on its own output keeps the same tickets"""
    from defect_chronicle.tickets import fix_inconsistent_tickets

    releases = make_releases(6)
    tickets = [
        make_ticket('P-1', datetime(2020, 2, 15), datetime(2020, 5, 10), releases, [releases[0]]),
        make_ticket('P-2', datetime(2020, 4, 15), datetime(2020, 5, 20), releases, [releases[1]]),
    ]

    first = fix_inconsistent_tickets(tickets, releases)
    second = fix_inconsistent_tickets(first, releases)

    assert [t.key for t in second] == [t.key for t in first]
    assert [t.injected_version.index for t in second] == [1, 2]


def test_sort_by_resolution():
    """Tickets are ordered by resolution date"""
    from defect_chronicle.tickets import sort_by_resolution

    releases = make_releases(5)
    late = make_ticket('P-1', datetime(2020, 2, 1), datetime(2020, 4, 1), releases)
    early = make_ticket('P-2', datetime(2020, 2, 1), datetime(2020, 3, 1), releases)

    assert [t.key for t in sort_by_resolution([late, early])] == ['P-2', 'P-1']


# =============================================================================
# TICKET LINKING TESTS
# =============================================================================

def test_link_tickets_to_commits():
    """Commits mentioning a ticket key are linked to it, not to longer keys"""
    from defect_chronicle.tickets import link_tickets_to_commits

    releases = make_releases(3)
    t12 = make_ticket('AVRO-12', datetime(2020, 1, 15), datetime(2020, 2, 15), releases)
    t123 = make_ticket('AVRO-123', datetime(2020, 1, 15), datetime(2020, 2, 15), releases)
    commits = [
        Commit('c2', 'x', datetime(2020, 2, 10), msg='AVRO-123: fix reader'),
        Commit('c1', 'x', datetime(2020, 2, 1), msg='Fix AVRO-12 overflow'),
        Commit('c3', 'x', datetime(2020, 2, 12), msg='Follow-up for avro-12.'),
        Commit('c4', 'x', datetime(2020, 2, 13), msg='XAVRO-12 unrelated'),
    ]

    link_tickets_to_commits([t12, t123], commits)

    assert [c.hash for c in t12.commits] == ['c1', 'c3']
    assert [c.hash for c in t123.commits] == ['c2']


# =============================================================================
# INTEGRATION TESTS
# =============================================================================

def test_package_imports():
    """Main package should import all public APIs"""
    from defect_chronicle import (
        Release,
        Ticket,
        fix_inconsistent_tickets,
        ProportionEstimator,
        cold_start_proportion,
        BugLabeler,
        WalkForward,
        JiraClient,
        GitBackend,
        CsvDatasetWriter,
        build_datasets,
    )


def test_package_version():
    """Package should have version"""
    import defect_chronicle
    assert hasattr(defect_chronicle, '__version__')
    assert defect_chronicle.__version__


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
