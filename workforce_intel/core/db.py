"""Record loading for the CLI: SQLite jobs table and JSON exports.

The analytics engine never calls this module; it only receives the
JobRecord list these loaders produce.
"""

import json
import logging
import sqlite3
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from workforce_intel.core.schemas import JobRecord

logger = logging.getLogger(__name__)

_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    id                      TEXT PRIMARY KEY,
    short_agency            TEXT NOT NULL DEFAULT '',
    long_agency             TEXT NOT NULL DEFAULT '',
    title                   TEXT NOT NULL DEFAULT '',
    primary_category        TEXT NOT NULL DEFAULT 'Unknown',
    up_grade                TEXT NOT NULL DEFAULT '',
    duty_country            TEXT NOT NULL DEFAULT '',
    duty_station            TEXT NOT NULL DEFAULT '',
    posting_date            TEXT,
    application_window_days INTEGER,
    job_labels              TEXT NOT NULL DEFAULT '',
    languages               TEXT NOT NULL DEFAULT '',
    seniority_level         TEXT NOT NULL DEFAULT ''
);
"""

# Source exports use the scraper's column names; map them onto JobRecord fields.
_FIELD_ALIASES = {
    "up_grade": "grade",
}


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and jobs table, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute(_JOBS_TABLE)
    conn.commit()
    return conn


def insert_records(conn: sqlite3.Connection, records: Iterable[JobRecord]) -> int:
    """Insert records, ignoring ids that already exist. Returns rows inserted."""
    inserted = 0
    for r in records:
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO jobs
                (id, short_agency, long_agency, title, primary_category, up_grade,
                 duty_country, duty_station, posting_date, application_window_days,
                 job_labels, languages, seniority_level)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                r.id,
                r.short_agency,
                r.long_agency,
                r.title,
                r.primary_category,
                r.grade,
                r.duty_country,
                r.duty_station,
                r.posting_date,
                r.application_window_days,
                ", ".join(r.job_labels),
                ", ".join(r.languages),
                r.seniority_level,
            ),
        )
        inserted += cursor.rowcount
    conn.commit()
    return inserted


def fetch_records(conn: sqlite3.Connection, table: str = "jobs") -> list[JobRecord]:
    """Read every row of the jobs table as JobRecord, skipping invalid rows."""
    if not table.isidentifier():
        msg = f"Invalid table name: {table!r}"
        raise ValueError(msg)
    rows = conn.execute(f"SELECT * FROM {table}").fetchall()  # noqa: S608
    return _to_records(dict(row) for row in rows)


def load_records_json(path: str | Path) -> list[JobRecord]:
    """Load records from a JSON export (a list of objects, or {"jobs": [...]})."""
    path = Path(path)
    if not path.exists():
        msg = f"Records file not found: {path}"
        raise FileNotFoundError(msg)
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("jobs") or payload.get("data") or []
    if not isinstance(payload, list):
        msg = f"Expected a list of job objects in {path}"
        raise ValueError(msg)
    return _to_records(item for item in payload if isinstance(item, dict))


def load_records(path: str | Path, table: str = "jobs") -> list[JobRecord]:
    """Load records from a .db/.sqlite file or a JSON export, by suffix."""
    path = Path(path)
    if path.suffix in (".db", ".sqlite", ".sqlite3"):
        if not path.exists():
            msg = f"Database not found: {path}"
            raise FileNotFoundError(msg)
        conn = init_db(path)
        try:
            return fetch_records(conn, table)
        finally:
            conn.close()
    return load_records_json(path)


def _to_records(rows: Iterable[dict[str, Any]]) -> list[JobRecord]:
    records: list[JobRecord] = []
    skipped = 0
    for row in rows:
        data = {_FIELD_ALIASES.get(k, k): v for k, v in row.items()}
        try:
            records.append(JobRecord.model_validate(data))
        except ValidationError as e:
            skipped += 1
            logger.warning("Skipping invalid job row %r: %d validation errors", row.get("id"), e.error_count())
    if skipped:
        logger.warning("Skipped %d invalid job rows", skipped)
    logger.debug("Loaded %d job records", len(records))
    return records
