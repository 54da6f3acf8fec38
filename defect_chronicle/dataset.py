"""
CSV output of labeled method datasets.
"""

from pathlib import Path

import pandas as pd

from .config import DATASET_COLUMNS, OUTPUT_DIR
from .timeline import Release, Ticket, iter_methods


def method_rows(project: str, releases: list[Release]) -> list[dict]:
    """One row per method of every release, in release order"""
    rows = []
    for release in releases:
        for method in iter_methods([release]):
            rows.append({
                'project': project,
                'release_index': release.index,
                'release_name': release.name,
                'path': method.path,
                'class_name': method.class_name,
                'method': method.name + method.signature,
                'loc': method.loc,
                'complexity': method.complexity,
                'churn': method.churn,
                'loc_added': method.loc_added,
                'n_auth': method.n_auth,
                'weekend_commit_ratio': round(method.weekend_commit_ratio, 4),
                'newcomer_risk': method.newcomer_risk,
                'buggy': 'yes' if method.buggy else 'no',
            })
    return rows


class CsvDatasetWriter:
    """Writes releases, tickets and labeled snapshots under <output>/<project>/"""

    def __init__(self, project: str, output_dir: Path = OUTPUT_DIR):
        self.project = project
        self.root = Path(output_dir) / project.lower()
        for sub in ('training', 'testing', 'other'):
            (self.root / sub).mkdir(parents=True, exist_ok=True)

    def snapshot_path(self, iteration: int, role: str) -> Path:
        if role not in ('training', 'testing'):
            raise ValueError(f"Unknown snapshot role: {role}")
        return self.root / role / f'{self.project}_{role}_{iteration}.csv'

    def write_snapshot(self, releases: list[Release], iteration: int, role: str) -> Path:
        path = self.snapshot_path(iteration, role)
        df = pd.DataFrame(method_rows(self.project, releases), columns=DATASET_COLUMNS)
        df.to_csv(path, index=False)
        return path

    def write_full_dataset(self, releases: list[Release]) -> Path:
        path = self.root / 'other' / f'{self.project}_full_dataset.csv'
        df = pd.DataFrame(method_rows(self.project, releases), columns=DATASET_COLUMNS)
        df.to_csv(path, index=False)
        return path

    def write_release_list(self, releases: list[Release]) -> Path:
        path = self.root / 'other' / f'{self.project}_release_list.csv'
        df = pd.DataFrame(
            [{
                'index': r.index,
                'version_id': r.version_id,
                'name': r.name,
                'date': r.date.isoformat(),
                'commits': len(r.commits),
            } for r in releases],
            columns=['index', 'version_id', 'name', 'date', 'commits'],
        )
        df.to_csv(path, index=False)
        return path

    def write_ticket_summary(self, tickets: list[Ticket]) -> Path:
        path = self.root / 'other' / f'{self.project}_ticket_summary.csv'
        columns = ['key', 'created', 'resolved', 'opening_version', 'fixed_version',
                   'injected_version', 'affected_versions', 'commits']

        def name(release):
            return release.name if release is not None else ''

        df = pd.DataFrame(
            [{
                'key': t.key,
                'created': t.creation_date.isoformat(),
                'resolved': t.resolution_date.isoformat(),
                'opening_version': name(t.opening_version),
                'fixed_version': name(t.fixed_version),
                'injected_version': name(t.injected_version),
                'affected_versions': ' '.join(r.name for r in t.affected_versions),
                'commits': len(t.commits),
            } for t in tickets],
            columns=columns,
        )
        df.to_csv(path, index=False)
        return path

    def write_method_list(self, releases: list[Release]) -> Path:
        path = self.root / 'other' / f'{self.project}_method_list.csv'
        columns = ['release_index', 'release_name', 'path', 'class_name', 'method', 'start_line', 'end_line']
        df = pd.DataFrame(
            [{
                'release_index': m.release.index if m.release else None,
                'release_name': m.release.name if m.release else '',
                'path': m.path,
                'class_name': m.class_name,
                'method': m.name + m.signature,
                'start_line': m.start_line,
                'end_line': m.end_line,
            } for m in iter_methods(releases)],
            columns=columns,
        )
        df.to_csv(path, index=False)
        return path
