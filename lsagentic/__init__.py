"""Proposal workflow helpers for agent sandboxes: object store, claims, template patches, resolution, results and schemas."""

__version__ = "0.1.0"