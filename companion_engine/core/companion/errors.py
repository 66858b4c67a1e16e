"""Companion engine error taxonomy

All of these are expected, recoverable conditions. Core functions raise
them; CompanionService turns them into ActionResult reason tags.
"""


class CompanionEngineError(Exception):
    """Base class for engine errors."""

    reason: str = "engine_error"


class InsufficientFundsError(CompanionEngineError):
    """Ledger rejected a deduction."""

    reason = "insufficient_funds"


class AbilityAlreadyUnlockedError(CompanionEngineError):
    reason = "already_unlocked"


class PrerequisitesNotMetError(CompanionEngineError):
    """Level or evolution gate not satisfied."""

    reason = "prerequisites_not_met"


class QuestNotReadyError(CompanionEngineError):
    """Quest still has time remaining."""

    reason = "quest_not_ready"


class QuestAlreadyResolvedError(CompanionEngineError):
    """Quest is completed or failed; resolution is terminal."""

    reason = "quest_already_resolved"


class CompanionNotFoundError(CompanionEngineError, LookupError):
    reason = "not_found"
