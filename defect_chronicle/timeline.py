"""
Timeline model: releases, tickets, commits and the code units they label.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Commit:
    """A version-control commit, immutable once retrieved"""
    hash: str
    author_email: str
    date: datetime
    parents: tuple[str, ...] = ()
    msg: str = ''

    @property
    def parent(self) -> str | None:
        """First parent, the state a fix is diffed against"""
        return self.parents[0] if self.parents else None


@dataclass(frozen=True)
class Edit:
    """One edited region of a file, 1-based inclusive line numbers.

    A side with no lines (pure insertion or pure deletion) has end == start - 1.
    """
    old_start: int
    old_end: int
    new_start: int
    new_end: int

    @property
    def old_length(self) -> int:
        return max(0, self.old_end - self.old_start + 1)

    @property
    def new_length(self) -> int:
        return max(0, self.new_end - self.new_start + 1)


@dataclass(frozen=True)
class FileDiff:
    """Edits applied to one file by a commit, measured against its first parent"""
    old_path: str | None
    new_path: str | None
    edits: tuple[Edit, ...] = ()

    @property
    def path(self) -> str:
        return self.new_path or self.old_path


@dataclass(eq=False)
class Release:
    """A project release; equality follows the tracker's version id"""
    index: int
    name: str
    date: datetime
    version_id: str
    commits: list = field(default_factory=list)
    classes: list = field(default_factory=list)

    def __eq__(self, other):
        if not isinstance(other, Release):
            return NotImplemented
        return self.version_id == other.version_id

    def __hash__(self):
        return hash(self.version_id)

    def __repr__(self):
        return f'Release({self.index}, {self.name!r}, {self.date:%Y-%m-%d})'


@dataclass(eq=False)
class Ticket:
    """A fixed bug ticket and the versions it spans"""
    key: str
    creation_date: datetime
    resolution_date: datetime
    opening_version: Release | None = None
    fixed_version: Release | None = None
    injected_version: Release | None = None
    affected_versions: list = field(default_factory=list)
    commits: list = field(default_factory=list)

    @property
    def resolvable(self) -> bool:
        return self.opening_version is not None and self.fixed_version is not None

    def __repr__(self):
        iv = self.injected_version.index if self.injected_version else None
        ov = self.opening_version.index if self.opening_version else None
        fv = self.fixed_version.index if self.fixed_version else None
        return f'Ticket({self.key!r}, IV={iv}, OV={ov}, FV={fv})'


@dataclass(eq=False)
class CodeMethod:
    """A callable inside a class snapshot, with its metrics and bug label"""
    name: str
    path: str
    class_name: str
    start_line: int
    end_line: int
    release: Release | None = None
    signature: str = '()'

    # Size and complexity (radon)
    loc: int = 0
    complexity: int = 0

    # Historical metrics
    churn: int = 0
    loc_added: int = 0
    n_auth: int = 0
    weekend_commit_ratio: float = 0.0
    newcomer_risk: float = 0.0

    buggy: bool = False

    @property
    def key(self) -> str:
        """Canonical identity across releases, e.g. 'pkg/mod.py::run(self, x)'"""
        return f'{self.path}::{self.name}{self.signature}'


@dataclass(eq=False)
class CodeClass:
    """A class (or a module's top-level functions) in one release"""
    name: str
    path: str
    release: Release | None = None
    methods: list = field(default_factory=list)
    module_level: bool = False

    @property
    def owner(self) -> str | None:
        """Enclosing class name of the methods, None for module-level functions"""
        return None if self.module_level else self.name


# =============================================================================
# RELEASE LOOKUPS
# =============================================================================

def fetch_version(when: datetime, releases: list[Release]) -> Release | None:
    """First release dated on or after `when`, i.e. the one active at that time"""
    for release in releases:
        if release.date >= when:
            return release
    return None


def release_at(releases: list[Release], index: int) -> Release | None:
    for release in releases:
        if release.index == index:
            return release
    return None


def versions_between(releases: list[Release], injected: Release, fixed: Release) -> list[Release]:
    """Releases in [injected, fixed) by index"""
    return [r for r in releases if injected.index <= r.index < fixed.index]


def reindex_releases(releases: list[Release]) -> list[Release]:
    """Sort releases by date and renumber them 1..N"""
    ordered = sorted(releases, key=lambda r: r.date)
    for i, release in enumerate(ordered, 1):
        release.index = i
    return ordered


def associate_commits(releases: list[Release], commits: list[Commit]) -> None:
    """Attach each commit to the release whose window (previous date, date] holds it.

    Releases must already be sorted by date. Commits after the last release
    belong to no release.
    """
    ordered = sorted(commits, key=lambda c: c.date)
    previous = None
    for release in releases:
        release.commits = [
            c for c in ordered
            if c.date <= release.date and (previous is None or c.date > previous)
        ]
        previous = release.date


def drop_releases_without_commits(releases: list[Release]) -> list[Release]:
    """Remove empty releases and renumber the rest"""
    return reindex_releases([r for r in releases if r.commits])


def iter_methods(releases: list[Release]):
    for release in releases:
        for code_class in release.classes:
            yield from code_class.methods
