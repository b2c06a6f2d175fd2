"""Base provider abstraction for RTMX."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class HealthStatus:
    """Result of a provider connection test."""

    healthy: bool
    message: str = ""
    latency_ms: int = 0
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Provider(ABC):
    """Base class for all providers.

    Every provider receives its configuration at construction time and
    may optionally implement async ``initialize`` / ``cleanup`` lifecycle
    hooks.
    """

    def __init__(self, config: Any) -> None:
        self.config = config

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier, e.g. ``github``."""

    async def initialize(self) -> None:
        """Optional async initialization hook.

        Called once after the provider instance is created and before it
        is used for the first time.
        """

    async def cleanup(self) -> None:
        """Optional async cleanup hook, called when the caller is done."""

    @abstractmethod
    async def test_connection(self) -> HealthStatus:
        """Check that the provider is reachable with its credentials."""
