"""Pairing engine: random derangements over participant ids.

Two strategies satisfy the same contract (every id gives to exactly one
other id and receives from exactly one other id):

- ``circular``: shuffle, then each id gives to its successor. Always valid
  in one pass, always a single cycle through everyone.
- ``rejection``: shuffle a target list and redraw while anyone drew
  themselves. Uniform over all derangements. Redraws are bounded by
  ``max_attempts``; past that the engine falls back to ``circular``.

Every result is re-verified before it is returned.
"""

from __future__ import annotations

import enum
import logging
import random
from typing import Iterable, Mapping

from giftexchange.backend.errors import AssignmentIntegrityError, InsufficientParticipants

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 100


class PairingStrategy(str, enum.Enum):
    CIRCULAR = "circular"
    REJECTION = "rejection"


def assign(
    ids: Iterable[str],
    strategy: PairingStrategy | str = PairingStrategy.REJECTION,
    rng: random.Random | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> dict[str, str]:
    """Return a mapping giver id -> recipient id with no fixed points."""
    # Sorted so a seeded rng reproduces the same result for the same set.
    participants = sorted(set(ids))
    if len(participants) < 2:
        raise InsufficientParticipants(len(participants))

    strategy = PairingStrategy(strategy)
    rng = rng if rng is not None else random.Random()

    if strategy is PairingStrategy.CIRCULAR:
        mapping = _circular_shift(participants, rng)
    else:
        mapping = _rejection_sample(participants, rng, max_attempts)

    verify_assignment(participants, mapping)
    return mapping


def _circular_shift(participants: list[str], rng: random.Random) -> dict[str, str]:
    order = list(participants)
    rng.shuffle(order)
    count = len(order)
    return {order[index]: order[(index + 1) % count] for index in range(count)}


def _rejection_sample(participants: list[str], rng: random.Random, max_attempts: int) -> dict[str, str]:
    targets = list(participants)
    for _ in range(max_attempts):
        rng.shuffle(targets)
        if all(giver != target for giver, target in zip(participants, targets)):
            return dict(zip(participants, targets))

    logger.warning(
        "No derangement after %d draws for %d participants; using circular shift",
        max_attempts,
        len(participants),
    )
    return _circular_shift(participants, rng)


def verify_assignment(ids: Iterable[str], mapping: Mapping[str, str]) -> None:
    """Raise AssignmentIntegrityError unless mapping is a derangement of ids."""
    expected = set(ids)
    if set(mapping) != expected:
        raise AssignmentIntegrityError("Assignment does not cover exactly the participant ids")

    fixed = sorted(giver for giver, recipient in mapping.items() if giver == recipient)
    if fixed:
        raise AssignmentIntegrityError(f"Participants assigned to themselves: {', '.join(fixed)}")

    recipients = list(mapping.values())
    if len(set(recipients)) != len(recipients) or set(recipients) != expected:
        raise AssignmentIntegrityError("Assignment recipients are not a permutation of the participant ids")


def cycles(mapping: Mapping[str, str]) -> list[list[str]]:
    """Split an assignment into its gift cycles, each starting at its smallest id."""
    seen: set[str] = set()
    result: list[list[str]] = []
    for start in sorted(mapping):
        if start in seen:
            continue
        cycle = [start]
        seen.add(start)
        current = mapping[start]
        while current != start:
            cycle.append(current)
            seen.add(current)
            current = mapping[current]
        result.append(cycle)
    return result
