from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class FrameMetrics:
    frame: int
    agents: int
    far: int
    close: int
    contact: int
    contained: int
    separation_nudges: int
    aligned: int
    neighbor_checks: int
    frame_delta: float = 0.0
    frame_duration_ms: float = 0.0
