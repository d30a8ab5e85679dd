from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import BoundaryPolicy, SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import FrameMetrics

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

_BASIC_HEADER = [
    "frame",
    "agents",
    "far",
    "close",
    "contact",
    "neighbor_checks",
    "frame_ms",
]

_DETAILED_HEADER = [
    "frame",
    "agents",
    "far",
    "close",
    "contact",
    "contained",
    "separation_nudges",
    "aligned",
    "neighbor_checks",
    "frame_ms",
    "contact_ratio",
    "close_ratio",
    "neighbor_checks_per_agent",
    "mean_heading",
    "heading_spread",
    "mean_rotation",
]


def _format_basic_row(metrics: FrameMetrics, frame_ms: float) -> list[object]:
    return [
        metrics.frame,
        metrics.agents,
        metrics.far,
        metrics.close,
        metrics.contact,
        metrics.neighbor_checks,
        f"{frame_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: FrameMetrics, frame_ms: float) -> list[object]:
    agents = metrics.agents
    sin_sum = 0.0
    cos_sum = 0.0
    rotation_sum = 0.0
    snapshot = world.snapshot()
    for agent in snapshot.agents:
        radians = math.radians(agent["heading"])
        sin_sum += math.sin(radians)
        cos_sum += math.cos(radians)
        rotation_sum += agent["rotation"]

    if agents <= 0:
        contact_ratio = 0.0
        close_ratio = 0.0
        checks_per_agent = 0.0
        mean_heading = 0.0
        heading_spread = 0.0
        mean_rotation = 0.0
    else:
        contact_ratio = metrics.contact / agents
        close_ratio = metrics.close / agents
        checks_per_agent = metrics.neighbor_checks / agents
        mean_heading = math.degrees(math.atan2(sin_sum, cos_sum)) % 360.0
        # 0 when every heading agrees, 1 when they cancel out
        heading_spread = 1.0 - math.hypot(sin_sum, cos_sum) / agents
        mean_rotation = rotation_sum / agents

    return [
        metrics.frame,
        agents,
        metrics.far,
        metrics.close,
        metrics.contact,
        metrics.contained,
        metrics.separation_nudges,
        metrics.aligned,
        metrics.neighbor_checks,
        f"{frame_ms:.3f}",
        f"{contact_ratio:.4f}",
        f"{close_ratio:.4f}",
        f"{checks_per_agent:.4f}",
        f"{mean_heading:.4f}",
        f"{heading_spread:.4f}",
        f"{mean_rotation:.4f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    steps: int,
    seed: Optional[int] = None,
    log_path: Optional[Path] = None,
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    config_path: Optional[Path] = None,
    boundary_policy: Optional[str] = None,
    alignment: Optional[bool] = None,
) -> World:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if boundary_policy is not None:
        config.behavior.boundary_policy = BoundaryPolicy(boundary_policy)
    if alignment is not None:
        config.behavior.alignment_enabled = alignment

    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    world = World(config)
    frame_delta = 1.0 / config.frame_rate

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    frame_ms_series: list[float] = []
    contact_series: list[float] = []
    neighbor_checks_series: list[float] = []
    max_contact = (-1, -1)

    try:
        for _ in range(steps):
            metrics = world.step(frame_delta)
            frame_ms = 0.0 if deterministic_log else metrics.frame_duration_ms

            if summary_path:
                frame_ms_series.append(frame_ms)
                contact_series.append(float(metrics.contact))
                neighbor_checks_series.append(float(metrics.neighbor_checks))
                if metrics.contact > max_contact[0]:
                    max_contact = (metrics.contact, metrics.frame)

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, frame_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, frame_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        summary = {
            "steps": steps,
            "seed": config.seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "object_count": config.flock.object_count,
            "boundary_policy": config.behavior.boundary_policy.value,
            "alignment_enabled": config.behavior.alignment_enabled,
            "frame_ms": _summary_stats(frame_ms_series),
            "contact": _summary_stats(contact_series),
            "neighbor_checks": _summary_stats(neighbor_checks_series),
            "peaks": {"contact": {"value": max_contact[0], "frame": max_contact[1]}},
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    logger.info("headless run finished: steps=%d agents=%d", steps, len(world.store))
    return world


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless flock simulation")
    parser.add_argument("--steps", type=int, default=600)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write per-frame metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument("--summary", type=Path, default=None, help="Optional JSON file for run summary stats.")
    parser.add_argument(
        "--boundary",
        choices=[policy.value for policy in BoundaryPolicy],
        default=None,
        help="Override the containment policy from the configuration.",
    )
    parser.add_argument(
        "--alignment",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable or disable rotation alignment.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (frame_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)
    world = run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        config_path=args.config,
        boundary_policy=args.boundary,
        alignment=args.alignment,
    )
    world.shutdown()


if __name__ == "__main__":
    main()
