"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class RuleType(str, Enum):
    ROUND_ROBIN = "round_robin"
    WEIGHTED = "weighted"
    TERRITORY = "territory"
    CUSTOM = "custom"


class TargetModel(str, Enum):
    LEADS = "leads"
    CONTACTS = "contacts"
    OPPORTUNITIES = "opportunities"


class AssignToType(str, Enum):
    USER = "user"
    TEAM = "team"


class AssignmentReason(str, Enum):
    AUTO = "auto_assignment"
    REASSIGNMENT = "reassignment"
    ALREADY_ASSIGNED = "already_assigned"
    MANUAL = "manual"


class TerritoryType(str, Enum):
    GEOGRAPHIC = "geographic"
    INDUSTRY = "industry"
    SIZE = "size"
    CUSTOM = "custom"
