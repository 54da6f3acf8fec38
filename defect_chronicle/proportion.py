"""
Proportion estimation of injected versions.

P = (FV - IV) / (FV - OV), in release-index units, is learned from tickets
whose IV is trusted and then inverted to estimate IV for tickets without
one. Until a project has enough trusted tickets, a cold-start P pooled from
reference projects is used instead.
"""

import logging
import math

import numpy as np

from .config import PROPORTION_THRESHOLD, REFERENCE_PROJECTS
from .jira import JiraClient, JiraError
from .tickets import fix_inconsistent_tickets
from .timeline import Release, Ticket, versions_between

logger = logging.getLogger(__name__)


class ColdStartError(RuntimeError):
    """No reference project produced a usable proportion sample"""


def compute_p(ticket: Ticket) -> float:
    """Proportion of a ticket with known IV, OV and FV"""
    fv = ticket.fixed_version.index
    ov = ticket.opening_version.index
    iv = ticket.injected_version.index

    if fv == ov:
        return float(fv - iv)
    return (fv - iv) / (fv - ov)


def estimate_injected_index(ticket: Ticket, p: float) -> int:
    """Invert P for a ticket's OV and FV, rounding half up and clamping at 1"""
    fv = ticket.fixed_version.index
    ov = ticket.opening_version.index

    if fv == ov:
        iv = math.floor(fv - p + 0.5)
    else:
        iv = fv - math.floor(p * (fv - ov) + 0.5)

    return max(iv, 1)


def cold_start_proportion(projects=None, source_factory=None) -> float:
    """
    Mean P over the trusted tickets of every reference project, pooled.

    Args:
        projects: reference project keys (defaults to REFERENCE_PROJECTS)
        source_factory: callable(project) -> object with get_releases() and
            fetch_tickets(releases); defaults to JiraClient

    Raises:
        ColdStartError: if no project yields a single ticket with IV
    """
    if projects is None:
        projects = REFERENCE_PROJECTS
    if source_factory is None:
        source_factory = JiraClient

    samples = []
    for project in projects:
        try:
            source = source_factory(project)
            releases = source.get_releases()
            tickets = source.fetch_tickets(releases)
        except (JiraError, OSError, ValueError) as e:
            logger.warning("Cold start: skipping %s, tickets unavailable: %s", project, e)
            continue

        trusted = [t for t in fix_inconsistent_tickets(tickets, releases) if t.injected_version is not None]
        samples.extend(compute_p(t) for t in trusted)
        logger.info("Cold start: %s contributed %d tickets", project, len(trusted))

    if not samples:
        raise ColdStartError(f"No proportion samples in reference projects: {', '.join(projects)}")

    # Same value for any panel or ticket order
    p_cold = float(np.mean(sorted(samples)))
    logger.info("Cold start proportion: %.4f from %d tickets", p_cold, len(samples))
    return p_cold


class ProportionEstimator:
    """Incremental IV estimation over tickets in resolution order.

    The known-IV list only grows: each estimate uses the trusted tickets
    resolved before the ticket being estimated, never later ones.
    """

    def __init__(self, p_cold_start: float, threshold: int = PROPORTION_THRESHOLD):
        self.p_cold_start = p_cold_start
        self.threshold = threshold
        self.known = []      # tickets with trusted IV, in resolution order
        self.estimated = {}  # ticket key -> P used

    def current_p(self) -> float:
        """P for the next IV-less ticket given what is known so far"""
        if len(self.known) < self.threshold:
            return self.p_cold_start
        return float(np.mean([compute_p(t) for t in self.known]))

    def estimate(self, tickets: list[Ticket], releases: list[Release]) -> list[Ticket]:
        """Fill IV and AV for every ticket lacking an IV; returns tickets by resolution date"""
        ordered = sorted(tickets, key=lambda t: t.resolution_date)
        by_index = {r.index: r for r in releases}

        for ticket in ordered:
            if ticket.injected_version is not None:
                self.known.append(ticket)
                continue

            p = self.current_p()
            iv = estimate_injected_index(ticket, p)
            ticket.injected_version = by_index[iv]
            ticket.affected_versions = versions_between(releases, ticket.injected_version, ticket.fixed_version)
            self.estimated[ticket.key] = p

        logger.info("Proportion: estimated IV for %d tickets (%d known)", len(self.estimated), len(self.known))
        return ordered
