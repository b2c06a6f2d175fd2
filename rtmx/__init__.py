"""RTMX: requirements traceability matrix toolkit."""

__version__ = "0.3.0"
