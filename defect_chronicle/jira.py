"""
Jira REST integration for project releases and fixed bug tickets.
"""

from datetime import datetime

import requests

from .config import JIRA_API_BASE, JIRA_PAGE_SIZE, JIRA_TOKEN, REQUEST_TIMEOUT
from .timeline import Release, Ticket, fetch_version

BUG_JQL = (
    'project = "{project}" AND issueType = "Bug" '
    'AND (status = "closed" OR status = "resolved") AND resolution = "fixed"'
)
TICKET_FIELDS = 'key,resolutiondate,versions,created'


class JiraError(RuntimeError):
    """The tracker answered with an error or an unexpected payload"""


def parse_jira_timestamp(value: str) -> datetime:
    """'2014-03-02T10:15:30.000+0000' -> naive datetime at minute precision"""
    return datetime.fromisoformat(value[:16])


class JiraClient:
    """Fetch the release timeline and fixed bug tickets of a Jira project"""

    def __init__(self, project: str, session: requests.Session = None, api_base: str = JIRA_API_BASE):
        self.project = project.upper()
        self.api_base = api_base.rstrip('/')
        self.api_calls = 0

        # Reuse a caller's session if provided, otherwise create new
        if session:
            self.session = session
        else:
            self.session = requests.Session()
            if JIRA_TOKEN:
                self.session.headers['Authorization'] = f'Bearer {JIRA_TOKEN}'
            self.session.headers['Accept'] = 'application/json'
            self.session.headers['User-Agent'] = 'Defect-Chronicle'

    def _get(self, path: str, params: dict = None) -> dict:
        url = f'{self.api_base}/{path}'
        try:
            resp = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
            self.api_calls += 1
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            raise JiraError(f"Jira request failed for {self.project}: {e}") from e

    def get_releases(self) -> list[Release]:
        """Released versions with a date, one per date, ordered and indexed 1..N"""
        data = self._get(f'project/{self.project}')

        by_date = {}
        for version in data.get('versions', []):
            if 'releaseDate' not in version or 'name' not in version:
                continue
            date = datetime.fromisoformat(version['releaseDate'])
            by_date[date] = (version['name'], str(version.get('id', version['name'])))

        releases = []
        for i, date in enumerate(sorted(by_date), 1):
            name, version_id = by_date[date]
            releases.append(Release(index=i, name=name, date=date, version_id=version_id))
        return releases

    def fetch_tickets(self, releases: list[Release]) -> list[Ticket]:
        """
        All fixed bugs of the project, with OV, FV and tracker AV resolved
        against `releases`.
        """
        tickets = []
        start_at = 0
        total = 1

        while start_at < total:
            data = self._get('search', params={
                'jql': BUG_JQL.format(project=self.project),
                'fields': TICKET_FIELDS,
                'startAt': start_at,
                'maxResults': JIRA_PAGE_SIZE,
            })
            total = data.get('total', 0)
            issues = data.get('issues', [])

            for issue in issues:
                ticket = self._to_ticket(issue, releases)
                if ticket is not None:
                    tickets.append(ticket)

            if not issues:
                break
            start_at += len(issues)

        return tickets

    def _to_ticket(self, issue: dict, releases: list[Release]) -> Ticket | None:
        fields = issue.get('fields', {})
        if not fields.get('created') or not fields.get('resolutiondate'):
            return None

        creation = parse_jira_timestamp(fields['created'])
        resolution = parse_jira_timestamp(fields['resolutiondate'])

        names = {v.get('name') for v in fields.get('versions') or []}
        affected = [r for r in releases if r.name in names]

        return Ticket(
            key=issue['key'],
            creation_date=creation,
            resolution_date=resolution,
            opening_version=fetch_version(creation, releases),
            fixed_version=fetch_version(resolution, releases),
            affected_versions=affected,
        )
