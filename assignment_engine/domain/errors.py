"""Assignment engine error taxonomy.

Matching failures (misconfiguration) and resolution failures (temporary
capacity exhaustion) are distinct types so callers can tell them apart.
"""

from __future__ import annotations


class AssignmentError(Exception):
    """Base class for every error raised by the engine."""


class NoMatchingRule(AssignmentError):
    """No active rule's conditions, time window and active days matched."""


class NoEligibleAssignee(AssignmentError):
    """All candidate users are unavailable or at capacity."""


class NoTerritoryMatch(AssignmentError):
    """A territory rule found no covering territory."""


class RuleTypeNotImplemented(AssignmentError):
    """The rule type has no resolver (currently only ``custom``)."""


class InvalidRuleConfiguration(AssignmentError):
    """A rule or territory definition is malformed."""


class PersistenceFailure(AssignmentError):
    """An underlying store read or write failed; the operation was rolled back."""


class ConcurrentUpdateConflict(AssignmentError):
    """A lost update on a cursor or capacity counter was detected."""


class AssignmentTimeout(AssignmentError):
    """The caller's deadline expired before the assignment was committed."""


class TargetNotFound(AssignmentError):
    pass


class RuleNotFound(AssignmentError):
    pass


class TerritoryNotFound(AssignmentError):
    pass
