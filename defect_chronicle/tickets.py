"""
Ticket consistency filtering and ticket/commit linking.
"""

import logging
import re

from .timeline import Commit, Release, Ticket, versions_between

logger = logging.getLogger(__name__)


def fix_inconsistent_tickets(tickets: list[Ticket], releases: list[Release]) -> list[Ticket]:
    """
    Drop tickets whose version metadata cannot be trusted.

    Tickets that carry affected versions must agree with their own dates:
    the earliest affected version becomes the injected version, or the
    ticket is dropped. Afterwards every ticket still needs an opening and a
    fixed version, an opening version later than the first release, and
    IV <= OV <= FV.

    Runs once before proportion (to seed trusted tickets) and once after it
    (to catch estimates that produced an impossible layout). Returns a new
    list; retained tickets may have their IV and AV updated.
    """
    trusted = []
    for ticket in tickets:
        if ticket.affected_versions and ticket.resolvable:
            if not _trust_affected_versions(ticket, releases):
                logger.debug("Dropping %s: affected versions contradict ticket dates", ticket.key)
                continue
        trusted.append(ticket)

    first_release = releases[0] if releases else None
    kept = [t for t in trusted if _has_consistent_versions(t, first_release)]

    logger.info("Consistency filter: kept %d of %d tickets", len(kept), len(tickets))
    return kept


def _trust_affected_versions(ticket: Ticket, releases: list[Release]) -> bool:
    """Set IV from the earliest affected version if the tracker data holds up"""
    first_av = min(ticket.affected_versions, key=lambda r: r.date)

    if (first_av.date < ticket.resolution_date
            and first_av.date <= ticket.creation_date
            and first_av.index != ticket.opening_version.index):
        ticket.injected_version = first_av
        ticket.affected_versions = versions_between(releases, first_av, ticket.fixed_version)
        return True

    return False


def _has_consistent_versions(ticket: Ticket, first_release: Release | None) -> bool:
    if not ticket.resolvable or first_release is None:
        return False

    ov, fv, iv = ticket.opening_version, ticket.fixed_version, ticket.injected_version

    # Opened at the very first release: nothing is known about earlier injection
    if ov.index == first_release.index or ov.date <= first_release.date:
        return False
    if ov.index > fv.index or ov.date > fv.date:
        return False
    if iv is not None and iv.index > ov.index:
        return False

    return True


def sort_by_resolution(tickets: list[Ticket]) -> list[Ticket]:
    return sorted(tickets, key=lambda t: t.resolution_date)


def link_tickets_to_commits(tickets: list[Ticket], commits: list[Commit]) -> None:
    """Attach to each ticket the commits whose message mentions its key"""
    ordered = sorted(commits, key=lambda c: c.date)
    linked = 0

    for ticket in tickets:
        pattern = re.compile(rf'(?<![\w-]){re.escape(ticket.key)}(?!\d)', re.IGNORECASE)
        ticket.commits = [c for c in ordered if pattern.search(c.msg or '')]
        if ticket.commits:
            linked += 1

    logger.info("Linked %d of %d tickets to fixing commits", linked, len(tickets))
