"""
Historical method metrics: churn, authorship and commit timing per release.
"""

import logging
from dataclasses import dataclass

from .config import SOURCE_EXTENSIONS
from .labeling import spans_overlap
from .source import SourceParseError, is_source_file, parse_callables
from .timeline import Commit, Release
from .vcs import GitBackendError, open_diff_session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitEdits:
    """Per-callable edit totals of one commit.

    touched maps (path, class name, callable name) to (churn, lines added),
    located with the callable spans of the commit's own post-image.
    """
    author_email: str
    weekend: bool
    touched: dict


class HistoryMetrics:
    """Fills churn, loc_added, n_auth, weekend_commit_ratio and newcomer_risk.

    Releases must be processed in order: newcomer risk compares each
    method's authors with those who touched it in the previous release.
    """

    def __init__(self, backend, extensions=SOURCE_EXTENSIONS):
        self.backend = backend
        self.extensions = tuple(extensions)
        self.previous_authors = {}  # method key -> author emails, previous release

    def compute(self, releases: list[Release]) -> None:
        for release in releases:
            commit_edits = self.collect_edits(release)
            current_authors = {}

            for code_class in release.classes:
                for method in code_class.methods:
                    authors = self._apply(method, (method.path, code_class.owner, method.name), commit_edits)
                    previous = self.previous_authors.get(method.key, set())
                    method.newcomer_risk = 1.0 if authors - previous else 0.0
                    current_authors[method.key] = authors

            self.previous_authors = current_authors
            logger.info("Metrics computed for release %s (%d commits)", release.name, len(commit_edits))

    def collect_edits(self, release: Release) -> list[CommitEdits]:
        collected = []
        for commit in release.commits:
            if commit.parent is None:
                continue
            try:
                with open_diff_session(self.backend, commit) as session:
                    touched = self._touched_callables(commit, session.diffs())
            except GitBackendError as e:
                logger.warning("Release %s: skipping commit %s in metrics: %s", release.name, commit.hash[:8], e)
                continue

            collected.append(CommitEdits(
                author_email=commit.author_email,
                weekend=commit.date.weekday() >= 5,
                touched=touched,
            ))
        return collected

    def _touched_callables(self, commit: Commit, file_diffs) -> dict:
        touched = {}
        for file_diff in file_diffs:
            path = file_diff.new_path
            if not path or not is_source_file(path, self.extensions):
                continue
            source = self.backend.file_content(commit.hash, path)
            if source is None:
                continue
            try:
                spans = parse_callables(source, path)
            except SourceParseError as e:
                logger.debug("Commit %s: %s", commit.hash[:8], e)
                continue

            for span in spans:
                churn = added = 0
                hit = False
                for edit in file_diff.edits:
                    if spans_overlap(span.start_line, span.end_line, edit.new_start, edit.new_end):
                        hit = True
                        churn += edit.old_length + edit.new_length
                        added += edit.new_length
                if hit:
                    key = (path, span.class_name, span.name)
                    prev_churn, prev_added = touched.get(key, (0, 0))
                    touched[key] = (prev_churn + churn, prev_added + added)
        return touched

    @staticmethod
    def _apply(method, key: tuple, commit_edits: list[CommitEdits]) -> set:
        churn = 0
        added = 0
        authors = set()
        touching = 0
        weekend = 0

        for ce in commit_edits:
            if key not in ce.touched:
                continue
            commit_churn, commit_added = ce.touched[key]
            churn += commit_churn
            added += commit_added
            touching += 1
            authors.add(ce.author_email)
            if ce.weekend:
                weekend += 1

        method.churn = churn
        method.loc_added = added
        method.n_auth = len(authors)
        method.weekend_commit_ratio = weekend / touching if touching else 0.0
        return authors
