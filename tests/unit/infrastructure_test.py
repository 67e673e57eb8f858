"""Tests for the push-event infrastructure emitter."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

from modelforge.config import CompilerConfig
from modelforge.core.compiler import collect_declarations
from modelforge.core.registry import Registry
from modelforge.emitters.infrastructure import MANIFEST_PATH, SQL_PATH, emit_infrastructure


def _emit(registry: Registry, config: CompilerConfig) -> tuple[str, dict[str, object]]:
    artifacts = {artifact.path: artifact.content for artifact in emit_infrastructure(registry, config)}
    return artifacts[SQL_PATH], json.loads(artifacts[MANIFEST_PATH])


class TestWithPushEvents:
    def test_queue_table_and_indexes(self, sample_registry: Registry, config: CompilerConfig) -> None:
        sql, _ = _emit(sample_registry, config)

        assert sql.startswith("-- Push-event infrastructure for: ItemPublishedEvent")
        assert "CREATE TABLE forge_events (" in sql
        assert "payload JSONB NOT NULL" in sql
        assert "CONSTRAINT ck_forge_events_status CHECK" in sql
        assert "CREATE INDEX idx_forge_events_session ON forge_events (session_id);" in sql
        assert "CREATE INDEX idx_forge_events_queue ON forge_events (status, execute_at, priority);" in sql
        assert "CREATE INDEX idx_forge_events_correlation ON forge_events (correlation_id);" in sql
        assert "CREATE TABLE forge_events_schema_info (" in sql
        assert "VALUES ('events', 1) ON CONFLICT (component) DO NOTHING;" in sql

    def test_manifest_explains_installation(self, sample_registry: Registry, config: CompilerConfig) -> None:
        _, manifest = _emit(sample_registry, config)

        assert manifest["requires_events_infrastructure"] is True
        assert manifest["installation"] == {
            "trigger": "Detection of 1 push-event declaration(s)",
            "philosophy": "Infrastructure follows intent",
        }
        assert manifest["event_types"] == [{"name": "ItemPublishedEvent", "source": "events/item_published.rs"}]

    def test_custom_table_name(self, sample_registry: Registry) -> None:
        sql, manifest = _emit(sample_registry, CompilerConfig(events_table="outbox"))

        assert "CREATE TABLE outbox (" in sql
        assert manifest["events_table"]["name"] == "outbox"  # type: ignore[index]


class TestWithoutPushEvents:
    def test_no_op(self, make_models: Callable[[dict[str, str]], Path], config: CompilerConfig) -> None:
        root = make_models({"db/item.rs": "pub struct Item { pub id: DatabaseId<i64> }"})
        declarations, _ = collect_declarations(root, config)

        sql, manifest = _emit(Registry.build(declarations), config)

        assert sql == "-- No events infrastructure required\n"
        assert manifest == {"requires_events_infrastructure": False, "event_types": []}
