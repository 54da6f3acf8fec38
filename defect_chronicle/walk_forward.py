"""
Walk-forward scheduling of training/testing snapshots.

Iteration i trains on releases 1..i and tests on release i+1. Training
labels come only from tickets fixed by release i+1, what a practitioner
could know at that point; testing labels use every ticket.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum

from .config import WALK_FORWARD_FRACTION
from .timeline import Release, Ticket, release_at

logger = logging.getLogger(__name__)

TRAINING = 'training'
TESTING = 'testing'


class WalkState(Enum):
    READY = 'ready'
    TRAINING = 'training'
    TESTING = 'testing'
    DONE = 'done'


@dataclass
class IterationResult:
    iteration: int
    training_releases: list
    training_tickets: int
    testing_release: Release | None = None
    skipped: bool = False
    error: str | None = None


@dataclass
class WalkForwardReport:
    iterations: list = field(default_factory=list)
    state: WalkState = WalkState.READY
    stopped_early: bool = False

    @property
    def completed(self) -> list:
        return [it for it in self.iterations if not it.skipped]

    @property
    def skipped(self) -> list:
        return [it for it in self.iterations if it.skipped]


def loop_limit(n_releases: int, fraction: float = WALK_FORWARD_FRACTION) -> int:
    """Exclusive upper bound on iterations, round(N * fraction) half up"""
    return math.floor(n_releases * fraction + 0.5)


class WalkForward:
    """
    Runs the walk-forward iterations over a labeled release timeline.

    Args:
        releases: releases indexed 1..N in date order
        tickets: consistent tickets with IV set
        labeler: object with label(releases, tickets)
        sink: object with write_snapshot(releases, iteration, role)
        fraction: share of the timeline evaluation may reach
    """

    def __init__(self, releases: list[Release], tickets: list[Ticket], labeler, sink,
                 fraction: float = WALK_FORWARD_FRACTION):
        self.releases = releases
        self.tickets = tickets
        self.labeler = labeler
        self.sink = sink
        self.fraction = fraction
        self.state = WalkState.READY

    def training_releases(self, iteration: int) -> list[Release]:
        return [r for r in self.releases if r.index <= iteration]

    def training_tickets(self, iteration: int) -> list[Ticket]:
        """Tickets already fixed by the release right after the training window"""
        return [
            t for t in self.tickets
            if t.fixed_version is not None and t.fixed_version.index <= iteration + 1
        ]

    def testing_release(self, iteration: int) -> Release | None:
        return release_at(self.releases, iteration + 1)

    def run(self) -> WalkForwardReport:
        report = WalkForwardReport()
        limit = loop_limit(len(self.releases), self.fraction)
        logger.info("Starting walk forward: %d releases, %d iterations", len(self.releases), max(limit - 1, 0))

        for i in range(1, limit):
            result = self.run_iteration(i)
            report.iterations.append(result)
            if self.state is WalkState.DONE:
                report.stopped_early = True
                break

        self.state = WalkState.DONE
        report.state = self.state
        logger.info("Finished walk forward: %d completed, %d skipped", len(report.completed), len(report.skipped))
        return report

    def run_iteration(self, i: int) -> IterationResult:
        train_releases = self.training_releases(i)
        train_tickets = self.training_tickets(i)
        result = IterationResult(iteration=i, training_releases=train_releases, training_tickets=len(train_tickets))

        logger.info("Iteration %d: training on releases 1-%d, testing on release %d", i, i, i + 1)

        self.state = WalkState.TRAINING
        self.labeler.label(train_releases, train_tickets)
        self._write(train_releases, i, TRAINING, result)

        testing = self.testing_release(i)
        if testing is None:
            logger.warning("No testing release at index %d, ending walk forward", i + 1)
            self.state = WalkState.DONE
            return result

        self.state = WalkState.TESTING
        result.testing_release = testing
        self.labeler.label([testing], self.tickets)
        self._write([testing], i, TESTING, result)
        return result

    def _write(self, releases, iteration, role, result) -> None:
        # A failed write marks the iteration skipped without stopping the other half
        try:
            self.sink.write_snapshot(releases, iteration, role)
        except (OSError, ValueError) as e:
            logger.error("Iteration %d: could not write %s set: %s", iteration, role, e)
            result.skipped = True
            if result.error is None:
                result.error = str(e)
