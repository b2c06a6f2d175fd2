"""Requirement data model."""

from rtmx.models.enums import Priority, Status
from rtmx.models.requirement import Requirement, is_cross_repo
from rtmx.models.stringset import StringSet

__all__ = ["Priority", "Requirement", "Status", "StringSet", "is_cross_repo"]
