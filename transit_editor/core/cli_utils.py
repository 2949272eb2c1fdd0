"""Common CLI utilities for editing scripts."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


def create_base_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Editor settings YAML (default: config/editor_config.yaml if present).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level.",
    )
    return parser


def add_edit_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--lenient-refresh",
        action="store_true",
        help="When no path exists between two stops, append the next stop link anyway "
        "(historical behaviour; produces disconnected link sequences).",
    )
    parser.add_argument(
        "--create-missing-children",
        action="store_true",
        help="Register missing child stop facilities using the replaced facility's name/coordinate.",
    )
    parser.add_argument(
        "--stop-on-error",
        action="store_true",
        help="Abort the batch at the first failing command.",
    )
    parser.add_argument(
        "--write-qa",
        action="store_true",
        help="Write a route consistency table for the edited schedule.",
    )


@dataclass
class EditStats:
    """Counters and completed step names collected over one edit run."""

    stats: dict[str, Any] = field(default_factory=dict)
    completed_steps: list[str] = field(default_factory=list)

    def update(self, step_stats: dict[str, Any]) -> None:
        self.stats.update(step_stats)

    def add_step(self, step_name: str) -> None:
        self.completed_steps.append(step_name)

    def get_summary(self) -> dict[str, Any]:
        return {"completed_steps": list(self.completed_steps), "step_count": len(self.completed_steps), **self.stats}
