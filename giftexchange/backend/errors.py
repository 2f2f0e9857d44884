"""Error types raised by the exchange backend.

Run-level failures are exceptions. Item-level problems found during
redistribution are reported as ``RedistributionIssue`` records instead.
"""

from __future__ import annotations


class GiftExchangeError(Exception):
    """Base class for all backend errors."""


class InsufficientParticipants(GiftExchangeError):
    def __init__(self, count: int) -> None:
        super().__init__(f"At least 2 participants are required, got {count}")
        self.count = count


class AssignmentIntegrityError(GiftExchangeError):
    """A computed assignment broke the derangement contract. Never retried."""


class TransientFetchError(GiftExchangeError):
    """The inventory collaborator failed; the run may be retried later."""


class RedistributionInProgress(GiftExchangeError):
    def __init__(self) -> None:
        super().__init__("A redistribution run is already in progress")


class UnknownParticipant(GiftExchangeError):
    def __init__(self, participant_id: str) -> None:
        super().__init__(f"Unknown participant: {participant_id}")
        self.participant_id = participant_id


class DuplicateSignup(GiftExchangeError):
    pass


class InvalidSignup(GiftExchangeError):
    pass


class InvalidTradeLink(InvalidSignup):
    pass


class InvalidObservation(GiftExchangeError):
    """An observed item did not expose a class identifier."""


class NoAssignment(GiftExchangeError):
    def __init__(self, participant_id: str) -> None:
        super().__init__(f"Participant {participant_id} has no recipient assigned")
        self.participant_id = participant_id
