"""Push-event infrastructure, installed only when push-event declarations exist.

The queue table, its indexes and the schema-info bookkeeping table are
rendered with SQLAlchemy for PostgreSQL. The manifest records why the
infrastructure was (or was not) generated.
"""

import json
import logging
from typing import Any

from sqlalchemy import CheckConstraint, Column, Index, Integer, MetaData, Table, Text, text
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.schema import CreateIndex, CreateTable

from modelforge.config import CompilerConfig
from modelforge.core.registry import Registry
from modelforge.emitters.artifact import Artifact
from modelforge.models import ModelDeclaration, Role

logger = logging.getLogger(__name__)

SQL_PATH = "sql/infrastructure.sql"
MANIFEST_PATH = "infrastructure/manifest.json"
SCHEMA_VERSION = 1

_EVENT_STATUSES = ("pending", "processing", "completed", "failed", "cancelled")


def _events_schema(table: str) -> tuple[Table, Table, list[Index]]:
    metadata = MetaData()
    events = Table(
        table,
        metadata,
        Column("id", UUID, primary_key=True, server_default=text("gen_random_uuid()")),
        Column("session_id", Text),
        Column("application", Text, nullable=False),
        Column("host", Text, nullable=False),
        Column("stream_id", Text),
        Column("event_type", Text, nullable=False),
        Column("correlation_id", UUID),
        Column("payload", JSONB, nullable=False),
        Column("execute_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("now()")),
        Column("context", JSONB),
        Column("status", Text, nullable=False, server_default=text("'pending'")),
        Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("now()")),
        Column("attempts", Integer, nullable=False, server_default=text("0")),
        Column("max_attempts", Integer, nullable=False, server_default=text("3")),
        Column("next_retry_at", TIMESTAMP(timezone=True)),
        Column("error_message", Text),
        Column("priority", Text, nullable=False, server_default=text("'normal'")),
        CheckConstraint(
            "status IN (" + ", ".join(f"'{status}'" for status in _EVENT_STATUSES) + ")",
            name=f"ck_{table}_status",
        ),
    )
    indexes = [
        Index(f"idx_{table}_session", events.c.session_id),
        Index(f"idx_{table}_queue", events.c.status, events.c.execute_at, events.c.priority),
        Index(f"idx_{table}_correlation", events.c.correlation_id),
    ]
    schema_info = Table(
        f"{table}_schema_info",
        metadata,
        Column("component", Text, primary_key=True),
        Column("version", Integer, nullable=False),
        Column("installed_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("now()")),
    )
    return events, schema_info, indexes


def _render_sql(table: str, event_types: list[ModelDeclaration]) -> str:
    events, schema_info, indexes = _events_schema(table)
    dialect = postgresql.dialect()
    register = (
        postgresql.insert(schema_info)
        .values(component="events", version=SCHEMA_VERSION)
        .on_conflict_do_nothing(index_elements=["component"])
    )
    statements = [
        f"-- Push-event infrastructure for: {', '.join(d.name for d in event_types)}",
        str(CreateTable(events).compile(dialect=dialect)).strip() + ";",
        *(str(CreateIndex(index).compile(dialect=dialect)).strip() + ";" for index in indexes),
        str(CreateTable(schema_info).compile(dialect=dialect)).strip() + ";",
        str(register.compile(dialect=dialect, compile_kwargs={"literal_binds": True})).strip() + ";",
    ]
    return "\n\n".join(statements) + "\n"


def build_manifest(table: str, event_types: list[ModelDeclaration]) -> dict[str, Any]:
    if not event_types:
        return {"requires_events_infrastructure": False, "event_types": []}
    return {
        "requires_events_infrastructure": True,
        "events_table": {
            "name": table,
            "schema_info_table": f"{table}_schema_info",
            "indexes": [f"idx_{table}_session", f"idx_{table}_queue", f"idx_{table}_correlation"],
            "schema_version": SCHEMA_VERSION,
        },
        "installation": {
            "trigger": f"Detection of {len(event_types)} push-event declaration(s)",
            "philosophy": "Infrastructure follows intent",
        },
        "event_types": [
            {"name": d.name, "source": "/".join((*d.lineage, d.path.name))} for d in event_types
        ],
    }


def emit_infrastructure(registry: Registry, config: CompilerConfig) -> list[Artifact]:
    event_types = [
        decorated.declaration
        for decorated in registry.classified()
        if decorated.declaration.role == Role.PUSH_EVENT
    ]
    if event_types:
        logger.info("Push events detected (%d); generating %s", len(event_types), config.events_table)
        sql = _render_sql(config.events_table, event_types)
    else:
        sql = "-- No events infrastructure required\n"
    manifest = build_manifest(config.events_table, event_types)
    return [
        Artifact(SQL_PATH, sql),
        Artifact(MANIFEST_PATH, json.dumps(manifest, indent=2) + "\n"),
    ]
