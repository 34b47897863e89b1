"""
Column mappings for the CSV to Parquet job.

These stand in for the "Change Schema" node of a visual Glue job: each
mapping renames and optionally casts one catalog column. The list travels
to the job as JSON in the --column_mappings argument and is fed straight
into ApplyMapping by the job script.
"""

import json
import re
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional

_TYPE_RE = re.compile(
    r"(string|boolean|tinyint|smallint|int|bigint|float|double|date|timestamp|decimal\(\d+,\s*\d+\))"
)


@dataclass(frozen=True)
class ColumnMapping:
    source: str
    target: str
    source_type: str
    target_type: str

    def as_tuple(self):
        """(source, source_type, target, target_type), the ApplyMapping order."""
        return (self.source, self.source_type, self.target, self.target_type)


def normalize_column_name(name: str) -> str:
    """
    Lowercase snake_case a header so Athena can query it without quoting.

    'Trip Distance (mi)' -> 'trip_distance_mi', '2023 total' -> 'col_2023_total'
    """
    cleaned = re.sub(r"[^0-9a-zA-Z]+", "_", name.strip()).strip("_").lower()
    if not cleaned:
        raise ValueError(f"Column name {name!r} has no usable characters")
    if cleaned[0].isdigit():
        cleaned = f"col_{cleaned}"
    return cleaned


def _check_known(kind: str, names: Iterable[str], known: Iterable[str]) -> None:
    unknown = sorted(set(names) - set(known))
    if unknown:
        raise ValueError(f"Unknown column(s) in {kind}: {', '.join(unknown)}")


def build_column_mappings(
    columns: List[Dict],
    renames: Optional[Dict[str, str]] = None,
    casts: Optional[Dict[str, str]] = None,
    drops: Optional[Iterable[str]] = None,
) -> List[ColumnMapping]:
    """
    Build mappings from catalog columns.

    Args:
        columns: Catalog columns, e.g. [{'Name': 'id', 'Type': 'bigint'}].
        renames: source column -> new name (normalized afterwards).
        casts: source column -> target type.
        drops: source columns to leave out of the output.

    Returns:
        list: One ColumnMapping per kept column, in catalog order.

    Raises:
        ValueError: On unknown column names, unsupported types, or two
            columns mapping to the same target name.
    """
    renames = renames or {}
    casts = casts or {}
    drops = set(drops or ())

    names = [col['Name'] for col in columns]
    _check_known("renames", renames, names)
    _check_known("casts", casts, names)
    _check_known("drops", drops, names)

    for column, target_type in casts.items():
        if not _TYPE_RE.fullmatch(target_type.lower()):
            raise ValueError(f"Unsupported target type {target_type!r} for column {column}")

    mappings = []
    seen: Dict[str, str] = {}
    for col in columns:
        source = col['Name']
        if source in drops:
            continue

        source_type = col.get('Type', 'string')
        target = normalize_column_name(renames.get(source, source))
        if target in seen:
            raise ValueError(f"Columns {seen[target]} and {source} both map to '{target}'")
        seen[target] = source

        mappings.append(ColumnMapping(
            source=source,
            target=target,
            source_type=source_type,
            target_type=casts.get(source, source_type).lower(),
        ))

    if not mappings:
        raise ValueError("Every column was dropped; nothing left to write")

    return mappings


def mappings_to_argument(mappings: List[ColumnMapping]) -> str:
    return json.dumps([asdict(m) for m in mappings], separators=(",", ":"))


def mappings_from_argument(text: str) -> List[ColumnMapping]:
    return [ColumnMapping(**item) for item in json.loads(text)]
