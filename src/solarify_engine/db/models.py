"""SQL schema for samples, thresholds and alerts, as ordered migration steps."""

SCHEMA_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    id      INTEGER PRIMARY KEY CHECK (id = 1),
    version INTEGER NOT NULL
)
"""

# Each version lists the statements that move a database from the previous one.
MIGRATIONS: dict[int, list[str]] = {
    1: [
        # ── Telemetry ───────────────────────────────────────────
        """
        CREATE TABLE IF NOT EXISTS performance_samples (
            equipment_id    TEXT NOT NULL,
            recorded_at     TEXT NOT NULL,
            equipment_type  TEXT NOT NULL,
            status          TEXT NOT NULL,
            sample_json     TEXT NOT NULL,
            ingested_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            PRIMARY KEY (equipment_id, recorded_at)
        )
        """,
        # ── Alerting ────────────────────────────────────────────
        """
        CREATE TABLE IF NOT EXISTS alert_thresholds (
            equipment_id            TEXT PRIMARY KEY,
            min_efficiency          REAL NOT NULL,
            min_performance_ratio   REAL NOT NULL,
            max_temperature         REAL NOT NULL,
            min_availability        REAL NOT NULL,
            updated_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS alerts (
            id              TEXT PRIMARY KEY,
            equipment_id    TEXT NOT NULL,
            triggered_by    TEXT NOT NULL,
            severity        TEXT NOT NULL,
            state           TEXT NOT NULL DEFAULT 'active',
            created_at      TEXT NOT NULL,
            current_value   REAL NOT NULL,
            threshold_value REAL NOT NULL,
            unit            TEXT NOT NULL,
            title           TEXT NOT NULL,
            description     TEXT NOT NULL,
            actions_json    TEXT NOT NULL DEFAULT '[]',
            acknowledged_at TEXT,
            resolved_at     TEXT,
            resolution      TEXT
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_alerts_created ON alerts(created_at)",
    ],
    2: [
        # Open-alert lookups run on every ingested sample.
        """
        CREATE INDEX IF NOT EXISTS idx_alerts_open
            ON alerts(equipment_id, triggered_by) WHERE state != 'resolved'
        """,
        "CREATE INDEX IF NOT EXISTS idx_samples_status ON performance_samples(equipment_id, status)",
    ],
    3: [
        # Newest violating sample per open alert; auto-resolve needs a later one.
        "ALTER TABLE alerts ADD COLUMN last_violation_at TEXT",
    ],
}

SCHEMA_VERSION = max(MIGRATIONS)
