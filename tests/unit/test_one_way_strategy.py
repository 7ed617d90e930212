"""
Tests unitarios del orquestador one-way.

Verifica insercion, idempotencia, resolucion de conflictos, dry run,
aislamiento de errores por registro y corte por timeout/cancelacion.
"""
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Tuple

import pytest

from docsync.application.dto.sync_dto import SyncOptions
from docsync.application.services.conflict_detector import ConflictDetector
from docsync.application.services.conflict_resolvers import LastWriteWinsResolver
from docsync.application.services.schema_mapper import SchemaMapper
from docsync.application.use_cases.one_way_strategy import OneWayStrategy
from docsync.core.config import Settings
from docsync.domain.repositories.stores import DocumentStore
from docsync.infrastructure.factory import build_conflict_detector
from docsync.shared.exceptions.sync import DocumentStoreException

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)


def _post(title: str, **extra: Any) -> Dict[str, Any]:
    fields = {"Title": title, "views": 10, "updated_at": T0}
    fields.update(extra)
    return fields


class TestFreshInsert:
    """Documentos sin fila local se insertan sin conflicto."""

    def test_inserts_with_identity_column(self, strategy, documents, relational):
        documents.add("posts", "rec1", _post("Hello", Secret="x"))

        result = strategy.sync("posts")

        assert result.processed == 1
        assert result.synced == 1
        assert result.conflict_count == 0
        assert result.is_successful()
        table, row = relational.inserts[0]
        assert table == "blog_posts"
        assert row["id"] == "rec1"
        assert row["title"] == "Hello"
        assert "Secret" not in row
        assert row["created_at"] is not None
        assert row["updated_at"] == T0

    def test_finished_at_is_set(self, strategy, documents):
        documents.add("posts", "rec1", _post("Hello"))

        result = strategy.sync("posts")

        assert result.finished_at is not None
        assert result.finished_at >= result.started_at


class TestIdempotence:
    """Re-ejecutar sin cambios en el origen no genera conflictos."""

    def test_second_run_has_no_conflicts(self, strategy, documents):
        documents.add("posts", "rec1", _post("Hello"))
        documents.add("posts", "rec2", _post("World", Published=True))

        first = strategy.sync("posts")
        second = strategy.sync("posts")

        assert first.synced == first.processed == 2
        assert second.conflict_count == 0
        assert second.synced == second.processed == 2
        assert second.is_successful()

    def test_second_run_updates_without_identity_column(self, strategy, documents, relational):
        documents.add("posts", "rec1", _post("Hello"))

        strategy.sync("posts")
        strategy.sync("posts")

        assert len(relational.inserts) == 1
        _, row_id, columns = relational.updates[0]
        assert row_id == "rec1"
        assert "id" not in columns


class TestConflicts:
    """Fila existente con datos distintos."""

    def test_version_collision_is_left_for_manual_review(self, strategy, documents, relational):
        relational.seed("blog_posts", {"id": "rec1", "title": "Local", "views": 10, "_version": 3})
        documents.add("posts", "rec1", _post("Remote", _version=3))

        result = strategy.sync("posts")

        assert result.processed == 1
        assert result.synced == 0
        assert result.conflict_count == 1
        assert relational.updates == []
        assert result.pending_manual_review() == ["rec1"]
        entry = result.conflicts["rec1"]
        assert entry["action"] == "version_conflict"
        assert entry["resolver"] == "version_based"
        assert entry["requires_manual_intervention"] is True
        assert relational.get_row("blog_posts", "rec1")["title"] == "Local"

    def test_newer_remote_version_is_applied(self, strategy, documents, relational):
        relational.seed("blog_posts", {"id": "rec1", "title": "Local", "views": 10, "_version": 2})
        documents.add("posts", "rec1", _post("Remote", _version=3))

        result = strategy.sync("posts")

        assert result.synced == 1
        assert result.conflicts["rec1"]["action"] == "remote_newer_version"
        assert result.conflicts["rec1"]["winning_source"] == "remote"
        _, _, columns = relational.updates[0]
        assert columns["title"] == "Remote"
        assert columns["_version"] == 4
        assert "id" not in columns

    def test_tie_break_is_deterministic_and_low_confidence(self, documents, relational, mapper):
        detector = ConflictDetector([LastWriteWinsResolver()])
        strategy = OneWayStrategy(
            document_store=documents,
            relational_store=relational,
            schema_mapper=mapper,
            conflict_detector=detector,
        )
        documents.add("posts", "rec1", _post("Remote"))

        outcomes = []
        for _ in range(2):
            relational.seed("blog_posts", {"id": "rec1", "title": "Local", "views": 10, "updated_at": T0})
            result = strategy.sync("posts")
            outcomes.append(result.conflicts["rec1"])

        for entry in outcomes:
            assert entry["action"] == "timestamps_equal"
            assert entry["winning_source"] == "remote"
            assert entry["confidence"] == "low"
        assert relational.get_row("blog_posts", "rec1")["title"] == "Remote"

    def test_local_newer_keeps_local_data(self, documents, relational, mapper):
        detector = ConflictDetector([LastWriteWinsResolver()])
        strategy = OneWayStrategy(
            document_store=documents,
            relational_store=relational,
            schema_mapper=mapper,
            conflict_detector=detector,
        )
        relational.seed("blog_posts", {"id": "rec1", "title": "Local", "views": 10, "updated_at": T1})
        documents.add("posts", "rec1", _post("Remote"))

        result = strategy.sync("posts")

        assert result.conflicts["rec1"]["action"] == "local_newer"
        assert result.conflicts["rec1"]["confidence"] == "high"
        assert relational.get_row("blog_posts", "rec1")["title"] == "Local"

    def test_conflict_report_goes_to_audit_sink(self, strategy, documents, relational, audit_sink):
        relational.seed("blog_posts", {"id": "rec1", "title": "Local", "views": 10, "_version": 3})
        documents.add("posts", "rec1", _post("Remote", _version=3))

        strategy.sync("posts", SyncOptions(dry_run=True))

        assert len(audit_sink.entries) == 1
        entry = audit_sink.entries[0]
        assert entry["collection"] == "posts"
        assert entry["document_id"] == "rec1"
        assert entry["dry_run"] is True
        assert entry["report"]["best_resolver"] == "version_based"
        assert entry["resolution"].action == "version_conflict"


class TestDryRun:
    """Dry run calcula lo mismo pero nunca escribe."""

    def test_counters_match_real_run_without_writes(self, strategy, documents, relational):
        relational.seed("blog_posts", {"id": "rec1", "title": "Local", "views": 10, "_version": 1})
        documents.add("posts", "rec1", _post("Remote", _version=2))
        documents.add("posts", "rec2", _post("New"))

        dry = strategy.sync("posts", SyncOptions(dry_run=True))

        assert relational.writes == 0
        assert dry.processed == 2
        assert dry.synced == 2
        assert dry.conflict_count == 1

        real = strategy.sync("posts")

        assert real.summary() == dry.summary()
        assert relational.writes == 2


class TestFailures:
    """Errores de configuracion y por registro."""

    def test_missing_mapping_fails_fast(self, strategy, documents, relational):
        documents.add("comments", "rec1", {"text": "hola"})

        result = strategy.sync("comments")

        assert result.processed == 0
        assert result.error_count == 1
        assert not result.is_successful()
        assert "No local table mapping found for collection: comments" in result.errors[0]["message"]
        assert documents.list_calls == []
        assert relational.writes == 0

    def test_record_failure_does_not_stop_run(self, strategy, documents, relational):
        for doc_id in ("rec1", "rec2", "rec3"):
            documents.add("posts", doc_id, _post(doc_id))
        relational.failing_ids.add("rec2")

        result = strategy.sync("posts")

        assert result.processed == 3
        assert result.synced == 2
        assert result.error_count == 1
        context = result.errors[0]["context"]
        assert context["document_id"] == "rec2"
        assert context["collection"] == "posts"
        assert context["error_type"] == "RelationalStoreException"

    def test_listing_failure_keeps_partial_result(self, relational, mapper, detector):
        class BrokenStore(DocumentStore):
            def list_documents(self, collection: str, since: Optional[datetime] = None) -> Iterator[Tuple[str, Dict[str, Any]]]:
                yield "rec1", _post("ok")
                raise DocumentStoreException("Airtable error 503")

            def get_document(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
                return None

        strategy = OneWayStrategy(
            document_store=BrokenStore(),
            relational_store=relational,
            schema_mapper=mapper,
            conflict_detector=detector,
        )

        result = strategy.sync("posts", SyncOptions(batch_size=1))

        assert result.processed == 1
        assert result.synced == 1
        assert result.error_count == 1
        assert result.errors[0]["context"]["error_type"] == "DocumentStoreException"


class TestPagingAndStop:
    """Paginacion y corte entre registros."""

    def test_all_pages_are_processed_in_order(self, strategy, documents, relational):
        for i in range(5):
            documents.add("posts", f"rec{i}", _post(f"post {i}"))

        result = strategy.sync("posts", SyncOptions(batch_size=2))

        assert result.processed == 5
        assert [row["id"] for _, row in relational.inserts] == [f"rec{i}" for i in range(5)]

    def test_timeout_returns_partial_result(self, documents, relational, mapper, detector):
        ticks = iter([0.0, 1.0, 2.0, 50.0])
        strategy = OneWayStrategy(
            document_store=documents,
            relational_store=relational,
            schema_mapper=mapper,
            conflict_detector=detector,
            clock=lambda: next(ticks),
        )
        for i in range(3):
            documents.add("posts", f"rec{i}", _post(f"post {i}"))

        result = strategy.sync("posts", SyncOptions(timeout_s=10))

        assert result.timed_out is True
        assert result.processed == 2
        assert result.synced == 2
        assert result.errors[-1]["context"]["reason"] == "timeout"

    def test_cancel_event_stops_before_next_record(self, strategy, documents, relational):
        documents.add("posts", "rec1", _post("Hello"))
        cancel = threading.Event()
        cancel.set()

        result = strategy.sync("posts", cancel_event=cancel)

        assert result.cancelled is True
        assert result.processed == 0
        assert relational.writes == 0
        assert not result.is_successful()


class TestSyncDocument:
    """Sincronizacion de un documento puntual."""

    def test_fetches_document_when_not_supplied(self, strategy, documents, relational):
        documents.add("posts", "rec1", _post("Hello"))

        result = strategy.sync_document("posts", "rec1")

        assert result.processed == 1
        assert result.synced == 1
        assert relational.get_row("blog_posts", "rec1")["title"] == "Hello"

    def test_missing_document_is_recorded_error(self, strategy):
        result = strategy.sync_document("posts", "ghost")

        assert result.processed == 1
        assert result.synced == 0
        assert result.errors[0]["context"]["error_type"] == "DocumentNotFoundException"

    def test_accumulates_into_given_result(self, strategy, documents):
        documents.add("posts", "rec1", _post("Hello"))
        documents.add("posts", "rec2", _post("World"))

        result = strategy.sync_document("posts", "rec1")
        strategy.sync_document("posts", "rec2", result=result)

        assert result.processed == 2
        assert result.synced == 2

    def test_identity(self, strategy):
        assert strategy.get_name() == "one_way"
        assert strategy.supports_bidirectional() is False


class TestRepeatedRuns:
    """Editar en el origen, sincronizar y re-ejecutar con la configuracion por defecto."""

    @pytest.fixture
    def default_strategy(self, documents, relational, mapper):
        return OneWayStrategy(
            document_store=documents,
            relational_store=relational,
            schema_mapper=mapper,
            conflict_detector=build_conflict_detector(Settings(_env_file=None)),
        )

    def test_edits_settle_and_later_edits_apply(self, default_strategy, documents, relational):
        documents.add("posts", "rec1", _post("a"))
        default_strategy.sync("posts")

        documents.add("posts", "rec1", _post("b", updated_at=T1))
        edited = default_strategy.sync("posts")
        unchanged = default_strategy.sync("posts")

        assert edited.conflicts["rec1"]["action"] == "remote_newer"
        assert unchanged.conflict_count == 0
        assert unchanged.synced == 1

        documents.add("posts", "rec1", _post("c", updated_at=T2))
        default_strategy.sync("posts")

        assert relational.get_row("blog_posts", "rec1")["title"] == "c"
        assert default_strategy.sync("posts").conflict_count == 0

    def test_cleared_field_is_written_as_null(self, default_strategy, documents, relational):
        documents.add("posts", "rec1", _post("a", notes="x"))
        default_strategy.sync("posts")

        documents.add("posts", "rec1", _post("a", updated_at=T1))
        default_strategy.sync("posts")
        third = default_strategy.sync("posts")

        assert relational.get_row("blog_posts", "rec1")["notes"] is None
        assert third.conflict_count == 0

    def test_custom_identity_column_is_not_compared(self, documents, relational_factory):
        mapper = SchemaMapper(id_column="airtable_id")
        mapper.register_mapping("posts", "blog_posts", {"Title": "title"})
        relational = relational_factory(id_column="airtable_id")
        strategy = OneWayStrategy(
            document_store=documents,
            relational_store=relational,
            schema_mapper=mapper,
            conflict_detector=build_conflict_detector(Settings(_env_file=None)),
        )
        documents.add("posts", "rec1", _post("Hello"))

        strategy.sync("posts")
        second = strategy.sync("posts")

        assert second.conflict_count == 0
        assert relational.inserts[0][1]["airtable_id"] == "rec1"
        _, row_id, columns = relational.updates[0]
        assert row_id == "rec1"
        assert "airtable_id" not in columns

    def test_stored_created_at_survives_updates(self, default_strategy, documents, relational):
        documents.add("posts", "rec1", _post("a"))
        default_strategy.sync("posts")
        stored = relational.get_row("blog_posts", "rec1")["created_at"]

        documents.add("posts", "rec1", _post("b", updated_at=T1))
        default_strategy.sync("posts")

        _, _, columns = relational.updates[-1]
        assert "created_at" not in columns
        assert relational.get_row("blog_posts", "rec1")["created_at"] == stored

    def test_created_at_from_source_is_written(self, default_strategy, documents, relational):
        documents.add("posts", "rec1", _post("a", created_at=T0))
        default_strategy.sync("posts")

        documents.add("posts", "rec1", _post("b", created_at=T0, updated_at=T1))
        default_strategy.sync("posts")

        _, _, columns = relational.updates[-1]
        assert columns["created_at"] == T0
