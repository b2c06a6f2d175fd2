"""Issue-tracker adapters."""

from rtmx.providers.tracker.base import ExternalItem, TrackerAdapter, extract_requirement_id

__all__ = ["ExternalItem", "TrackerAdapter", "extract_requirement_id"]
