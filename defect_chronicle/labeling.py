"""
Diff-overlap bug labeling.

A method is buggy in a release when that release is the injected version of
a ticket and one of the ticket's fixing commits edited lines of the method,
as they stood before the fix.
"""

import logging
from dataclasses import dataclass

from .config import SOURCE_EXTENSIONS
from .source import SourceParseError, is_source_file, parse_callables
from .timeline import Commit, Release, Ticket, iter_methods
from .vcs import GitBackendError, open_diff_session

logger = logging.getLogger(__name__)


def spans_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Inclusive line ranges share at least one line"""
    return max(start_a, start_b) <= min(end_a, end_b)


@dataclass
class LabelingStats:
    """What one labeling pass did"""
    tickets_used: int = 0
    commits_processed: int = 0
    commits_skipped: int = 0
    methods_labeled: int = 0


class BugLabeler:
    """Marks methods touched by fixing commits as buggy in the ticket's IV"""

    def __init__(self, backend, parser=parse_callables, extensions=SOURCE_EXTENSIONS):
        self.backend = backend
        self.parser = parser
        self.extensions = tuple(extensions)

    def label(self, releases: list[Release], tickets: list[Ticket]) -> LabelingStats:
        """
        Reset and recompute the buggy flag of every method in `releases`.

        Only tickets whose injected version is one of `releases` contribute.
        A commit that cannot be diffed or parsed is logged and skipped; the
        ticket's other commits still count.
        """
        stats = LabelingStats()

        for method in iter_methods(releases):
            method.buggy = False

        targets = {r.version_id: r for r in releases}

        for ticket in tickets:
            iv = ticket.injected_version
            if iv is None or iv.version_id not in targets or not ticket.commits:
                continue
            stats.tickets_used += 1
            release = targets[iv.version_id]

            for commit in ticket.commits:
                if commit.parent is None:
                    continue
                try:
                    touched = self.touched_methods(commit)
                except (GitBackendError, SourceParseError, OSError, ValueError) as e:
                    stats.commits_skipped += 1
                    logger.error("Ticket %s: could not process commit %s: %s", ticket.key, commit.hash[:8], e)
                    continue

                stats.commits_processed += 1
                stats.methods_labeled += self._propagate(release, touched)

        logger.info(
            "Labeled %d methods from %d tickets (%d commits, %d skipped)",
            stats.methods_labeled, stats.tickets_used, stats.commits_processed, stats.commits_skipped,
        )
        return stats

    def touched_methods(self, commit: Commit) -> dict[str, set[tuple]]:
        """(class name, callable name) pairs each source file's edits overlap, by new path

        The class name is None for module-level functions.
        """
        touched = {}
        with open_diff_session(self.backend, commit) as session:
            for file_diff in session.diffs():
                if file_diff.new_path is None or not is_source_file(file_diff.new_path, self.extensions):
                    continue
                old_source = session.old_source(file_diff)
                if old_source is None:
                    continue

                spans = self.parser(old_source, file_diff.old_path)
                names = set()
                for edit in file_diff.edits:
                    for span in spans:
                        if spans_overlap(span.start_line, span.end_line, edit.old_start, edit.old_end):
                            names.add((span.class_name, span.name))
                if names:
                    touched[file_diff.new_path] = names
        return touched

    @staticmethod
    def _propagate(release: Release, touched: dict[str, set[tuple]]) -> int:
        # Matching is by class and name: redefinitions sharing a name in one class are labeled together
        labeled = 0
        for code_class in release.classes:
            names = touched.get(code_class.path)
            if not names:
                continue
            for method in code_class.methods:
                if (code_class.owner, method.name) in names and not method.buggy:
                    method.buggy = True
                    labeled += 1
        return labeled
