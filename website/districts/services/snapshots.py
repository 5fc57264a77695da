# ABOUTME: Reading and writing versioned, immutable snapshot files.
# ABOUTME: Output is deterministic so unchanged inputs produce byte-identical files.

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger('districts.services')

CATALOG = 'district-catalog'
ROSTER = 'representative-roster'
SPATIAL_TABLE = 'spatial-table'
CROSSWALK_TABLE = 'crosswalk-table'
PREFIX_TABLE = 'prefix-table'

KINDS = (CATALOG, ROSTER, SPATIAL_TABLE, CROSSWALK_TABLE, PREFIX_TABLE)


class SnapshotError(ValueError):
    """Raised when a snapshot file is malformed or not what the caller expected."""


def dump_snapshot(kind: str, country: str, version: str, data: Dict[str, Any]) -> str:
    """Serialize a snapshot envelope to its canonical text form."""
    if kind not in KINDS:
        raise SnapshotError(f"Unknown snapshot kind '{kind}'")
    if not version:
        raise SnapshotError('Snapshot version is required')

    payload = {
        'kind': kind,
        'country': country.upper(),
        'version': str(version),
        'data': data,
    }
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2) + '\n'


def write_snapshot(path: Path, kind: str, country: str, version: str, data: Dict[str, Any]) -> Path:
    path = Path(path)
    text = dump_snapshot(kind, country, version, data)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')
    logger.info("Wrote %s snapshot %s (version %s) to %s", kind, country.upper(), version, path)
    return path


def read_snapshot(path: Path, kind: str, country: Optional[str] = None) -> Dict[str, Any]:
    """
    Load a snapshot file and check its envelope.

    Returns the full envelope dict. Raises SnapshotError if the file is not
    valid JSON, is of another kind, or belongs to another country.
    """
    path = Path(path)
    try:
        with path.open('r', encoding='utf-8') as snapshot_file:
            payload = json.load(snapshot_file)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Snapshot {path} is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get('data'), dict):
        raise SnapshotError(f"Snapshot {path} has no data section")

    if payload.get('kind') != kind:
        raise SnapshotError(
            f"Snapshot {path} is a '{payload.get('kind')}' file, expected '{kind}'"
        )

    if country and str(payload.get('country', '')).upper() != country.upper():
        raise SnapshotError(
            f"Snapshot {path} is for country '{payload.get('country')}', expected '{country.upper()}'"
        )

    logger.debug("Loaded %s snapshot %s version %s", kind, payload.get('country'), payload.get('version'))
    return payload
