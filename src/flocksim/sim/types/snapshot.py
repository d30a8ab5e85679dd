from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import FrameMetrics


@dataclass(slots=True)
class Snapshot:
    frame: int
    metrics: FrameMetrics
    agents: List[Dict[str, Any]]
    arena: "SnapshotArena"
    metadata: "SnapshotMetadata"


@dataclass(slots=True)
class SnapshotArena:
    width: float
    height: float


@dataclass(slots=True)
class SnapshotMetadata:
    object_count: int
    object_size: float
    velocity_scalar: float
    contact_distance: float
    close_distance: float
    boundary_policy: str
    alignment_enabled: bool
    frame_rate: int
    seed: int | None
    config_version: str
