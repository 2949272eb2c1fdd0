"""Apply a command file to a transit schedule and write the edited schedule.

Run:
  uv run python scripts/apply_schedule_edits.py data/commands/edits.csv

Inputs (defaults):
- data/raw/network/{nodes,links}.csv
- data/raw/schedule/{stop_facilities,route_stops,route_links}.csv

Outputs:
- data/processed/schedule/{stop_facilities,route_stops,route_links}.csv
- data/processed/_meta/route_consistency.csv (with --write-qa)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

# Ensure repo root is on sys.path so `import transit_editor...` works when executing this file directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from transit_editor.core.cli_utils import EditStats, add_edit_flags, create_base_parser
from transit_editor.core.config import configure_logging, get_paths, load_editor_settings
from transit_editor.core.data_loaders import load_edit_dataset
from transit_editor.editing.consistency import route_consistency_table
from transit_editor.editing.editor import ScheduleEditor
from transit_editor.io import read_command_file, write_csv, write_schedule

LOGGER = logging.getLogger("apply_schedule_edits")

ROUTE_CONSISTENCY_FILE = "route_consistency.csv"


def _parse_args() -> argparse.Namespace:
    parser = create_base_parser("Apply edit commands to a transit schedule.")
    parser.add_argument("commands", type=Path, help="Delimiter-separated command file.")
    parser.add_argument("--network-dir", type=Path, default=None, help="Directory with nodes.csv/links.csv.")
    parser.add_argument("--schedule-dir", type=Path, default=None, help="Directory with the schedule tables.")
    parser.add_argument("--output-dir", type=Path, default=None, help="Where to write the edited schedule.")
    add_edit_flags(parser)
    return parser.parse_args()


def _log_consistency(label: str, table: pd.DataFrame) -> int:
    bad = table[~(table["is_contiguous"] & table["serves_stops"]).fillna(False)]
    LOGGER.info("%s: %d of %d routes inconsistent", label, len(bad), len(table))
    for r in bad.head(10).itertuples(index=False):
        LOGGER.debug("  %s/%s gap=%s unserved=%s", r.line_id, r.route_id, r.first_gap, r.first_unserved_stop)
    return int(len(bad))


def main() -> int:
    args = _parse_args()
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    paths = get_paths()
    stats = EditStats()

    settings = load_editor_settings(args.config)
    updates = {
        "lenient_refresh": settings.lenient_refresh or args.lenient_refresh,
        "create_missing_child_facilities": settings.create_missing_child_facilities
        or args.create_missing_children,
        "stop_on_error": settings.stop_on_error or args.stop_on_error,
    }
    settings = settings.model_copy(update=updates)
    LOGGER.info("Editor settings: %s", settings.model_dump())

    dataset = load_edit_dataset(paths, network_dir=args.network_dir, schedule_dir=args.schedule_dir)
    stats.update(dataset.summary)
    stats.add_step("load")

    before = route_consistency_table(dataset.schedule, dataset.network)
    stats.update({"inconsistent_routes_before": _log_consistency("Before edits", before)})

    editor = ScheduleEditor(dataset.schedule, dataset.network, settings=settings)
    LOGGER.info("Reading commands: %s", args.commands)
    report = editor.run_commands(read_command_file(args.commands, delimiter=settings.delimiter))
    stats.update(report.summary())
    stats.add_step("edit")

    after = route_consistency_table(dataset.schedule, dataset.network)
    stats.update({"inconsistent_routes_after": _log_consistency("After edits", after)})

    out_dir = paths.processed_schedule if args.output_dir is None else args.output_dir
    for p in write_schedule(dataset.schedule, out_dir):
        LOGGER.info("Wrote %s", p)
    stats.add_step("write")

    if args.write_qa:
        qa_out = paths.processed_meta / ROUTE_CONSISTENCY_FILE
        write_csv(after, qa_out)
        LOGGER.info("Wrote %s", qa_out)
        stats.add_step("qa")

    summary = stats.get_summary()
    LOGGER.info("Edit run complete. Steps: %d, summary: %s", summary["step_count"], summary)
    for failure in report.failures:
        LOGGER.warning("Failed command %d: %s -> %s", failure.record_no, list(failure.record), failure.error)
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
