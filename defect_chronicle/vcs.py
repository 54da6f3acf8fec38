"""
Version-control access: commit listing, first-parent diffs and blob retrieval.
"""

import logging
import re
from contextlib import contextmanager
from datetime import timezone
from pathlib import Path
from typing import Protocol

from git import Repo
from git.exc import GitError
from pydriller import Git

from .config import REPO_CACHE_DIR
from .timeline import Commit, Edit, FileDiff

logger = logging.getLogger(__name__)

# @@ -old_start[,old_count] +new_start[,new_count] @@
HUNK_HEADER = re.compile(r'^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@', re.MULTILINE)


class GitBackendError(RuntimeError):
    """A diff or blob could not be read from the repository"""


class VersionControl(Protocol):
    """What the labeler and metrics need from a repository"""

    def all_commits(self) -> list[Commit]:
        ...

    def diff(self, commit: Commit) -> list[FileDiff]:
        ...

    def file_content(self, revision: str, path: str) -> str | None:
        ...

    def list_files(self, revision: str) -> list[str]:
        ...


def parse_hunks(patch: str) -> tuple[Edit, ...]:
    """Edits from the hunk headers of a unified diff.

    With zero context, a hunk '-a,0' inserts after old line a, so its old
    range is empty (a+1 .. a); likewise for '+c,0' on the new side.
    """
    edits = []
    for m in HUNK_HEADER.finditer(patch or ''):
        old_start, old_count = int(m.group(1)), int(m.group(2) or 1)
        new_start, new_count = int(m.group(3)), int(m.group(4) or 1)
        if old_count == 0:
            old_start += 1
        if new_count == 0:
            new_start += 1
        edits.append(Edit(
            old_start=old_start,
            old_end=old_start + old_count - 1,
            new_start=new_start,
            new_end=new_start + new_count - 1,
        ))
    return tuple(edits)


class DiffSession:
    """Diff and pre-fix sources of one commit, loaded on demand.

    Acquired through open_diff_session() and released when the block exits,
    whether or not processing the commit succeeded.
    """

    def __init__(self, backend: VersionControl, commit: Commit):
        self.backend = backend
        self.commit = commit
        self._diffs = None
        self._sources = {}
        self.closed = False

    def diffs(self) -> list[FileDiff]:
        if self.closed:
            raise GitBackendError(f"Diff session for {self.commit.hash[:8]} is closed")
        if self._diffs is None:
            self._diffs = list(self.backend.diff(self.commit))
        return self._diffs

    def old_source(self, file_diff: FileDiff) -> str | None:
        """File content as of the first parent, None for files the commit added"""
        if self.closed:
            raise GitBackendError(f"Diff session for {self.commit.hash[:8]} is closed")
        if file_diff.old_path is None or self.commit.parent is None:
            return None
        if file_diff.old_path not in self._sources:
            self._sources[file_diff.old_path] = self.backend.file_content(self.commit.parent, file_diff.old_path)
        return self._sources[file_diff.old_path]

    def close(self):
        self._diffs = None
        self._sources.clear()
        self.closed = True


@contextmanager
def open_diff_session(backend: VersionControl, commit: Commit):
    session = DiffSession(backend, commit)
    try:
        yield session
    finally:
        session.close()


class GitBackend:
    """Read-only access to one local git repository.

    Constructed once per run and handed to every component that reads the
    repository.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._git = Git(str(self.path))
        self.repo = self._git.repo

    @classmethod
    def from_location(cls, location: str, cache_dir: Path = REPO_CACHE_DIR) -> 'GitBackend':
        """Open a local checkout, or clone a remote URL into cache_dir once"""
        local = Path(location).expanduser()
        if (local / '.git').exists() or (local / 'HEAD').exists():
            return cls(local)

        name = location.rstrip('/').split('/')[-1].removesuffix('.git')
        target = Path(cache_dir) / name
        if target.exists() and any(target.iterdir()):
            logger.info("Opening cached clone %s", target)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Cloning %s into %s", location, target)
            Repo.clone_from(location, str(target))
        return cls(target)

    def all_commits(self) -> list[Commit]:
        """Every commit reachable from HEAD, oldest first"""
        commits = []
        for c in self._git.get_list_commits(reverse=True):
            commits.append(Commit(
                hash=c.hash,
                author_email=c.author.email or 'unknown',
                date=_naive_utc(c.committer_date),
                parents=tuple(c.parents),
                msg=c.msg,
            ))
        commits.sort(key=lambda c: c.date)
        logger.info("Loaded %d commits from %s", len(commits), self.path)
        return commits

    def diff(self, commit: Commit) -> list[FileDiff]:
        if commit.parent is None:
            return []
        try:
            current = self.repo.commit(commit.hash)
            index = self.repo.commit(commit.parent).diff(current, create_patch=True, unified=0)
        except (GitError, ValueError) as e:
            raise GitBackendError(f"Cannot diff {commit.hash[:8]}: {e}") from e

        diffs = []
        for d in index:
            patch = d.diff.decode('utf-8', errors='replace') if isinstance(d.diff, bytes) else (d.diff or '')
            diffs.append(FileDiff(
                old_path=None if d.new_file else d.a_path,
                new_path=None if d.deleted_file else d.b_path,
                edits=parse_hunks(patch),
            ))
        return diffs

    def file_content(self, revision: str, path: str) -> str | None:
        try:
            tree = self.repo.commit(revision).tree
        except (GitError, ValueError) as e:
            raise GitBackendError(f"Unknown revision {revision}: {e}") from e
        try:
            blob = tree / path
        except KeyError:
            return None
        return blob.data_stream.read().decode('utf-8', errors='replace')

    def list_files(self, revision: str) -> list[str]:
        try:
            tree = self.repo.commit(revision).tree
        except (GitError, ValueError) as e:
            raise GitBackendError(f"Unknown revision {revision}: {e}") from e
        return sorted(item.path for item in tree.traverse() if item.type == 'blob')


def _naive_utc(moment):
    """Commit timestamps compared against tracker dates, which carry no zone"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)
