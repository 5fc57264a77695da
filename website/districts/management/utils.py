# ABOUTME: Shared argument and output handling for the offline table-building commands.
# ABOUTME: Resolves default snapshot paths from settings and writes JSON build reports.

import json
from pathlib import Path
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.management.base import CommandError

from ..constants import normalize_country_code
from ..services.dispatch import country_paths


def add_snapshot_arguments(parser):
    parser.add_argument(
        "--snapshot-version",
        required=True,
        help="Version label stored in the snapshot, e.g. the source data release (2025-02).",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Destination snapshot path. Defaults to the table configured in DISTRICT_RESOLUTION.",
    )
    parser.add_argument(
        "--report",
        default=None,
        help="Also write the build report as JSON to this path.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing snapshot.",
    )


def default_table_path(country_code: str) -> Optional[Path]:
    code = normalize_country_code(country_code)
    config = getattr(settings, "DISTRICT_RESOLUTION", {}).get(code)
    if not config:
        return None
    return country_paths(code, config, Path(settings.DISTRICT_DATA_DIR))["table"]


def output_path(options: Dict[str, Any], country_code: str) -> Path:
    """Snapshot destination from --output or settings; refuses to overwrite without --force."""
    if options.get("output"):
        path = Path(options["output"]).expanduser().resolve()
    else:
        path = default_table_path(country_code)
        if path is None:
            raise CommandError(
                f"No table configured for {country_code.upper()} in DISTRICT_RESOLUTION; pass --output."
            )

    if path.exists() and not options.get("force"):
        raise CommandError(f"Output file {path} already exists. Use --force to overwrite.")
    return path


def require_file(path: Optional[str], label: str) -> Path:
    if not path:
        raise CommandError(f"{label} is required")
    resolved = Path(path).expanduser()
    if not resolved.exists():
        raise CommandError(f"{label} not found: {resolved}")
    return resolved


def write_report(path: Optional[str], report: Dict[str, Any]) -> Optional[Path]:
    if not path:
        return None
    report_path = Path(path).expanduser()
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(
        json.dumps(report, ensure_ascii=False, sort_keys=True, indent=2) + "\n",
        encoding="utf-8",
    )
    return report_path
