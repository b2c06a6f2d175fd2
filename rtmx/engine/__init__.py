"""Sync engine package."""
