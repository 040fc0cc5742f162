"""Persistent storage for exported session memory."""

from __future__ import annotations

from .snapshot_store import SnapshotStore

__all__ = ["SnapshotStore"]
