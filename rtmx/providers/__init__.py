"""Providers package."""

from rtmx.providers.base import HealthStatus, Provider
from rtmx.providers.registry import ProviderRegistry

__all__ = ["HealthStatus", "Provider", "ProviderRegistry"]
