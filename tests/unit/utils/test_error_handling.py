"""Tests for tiercache.utils.error_handling module."""

from __future__ import annotations

from tiercache.utils.error_handling import (
    CacheError,
    ConfigurationError,
    ErrorCategory,
    ErrorCollector,
    ErrorSeverity,
    FetchError,
    PersistenceError,
    RequestCancelled,
    SerializationError,
    handle_persistence_error,
)


class TestErrorTaxonomy:
    def test_fetch_error_category(self):
        error = FetchError("backend down", key="orders")
        assert isinstance(error, CacheError)
        assert error.category == ErrorCategory.NETWORK
        assert error.severity == ErrorSeverity.MEDIUM
        assert error.key == "orders"
        assert error.suggestions

    def test_request_cancelled_is_low_severity(self):
        error = RequestCancelled("superseded")
        assert error.category == ErrorCategory.CANCELLATION
        assert error.severity == ErrorSeverity.LOW

    def test_serialization_error_is_persistence_error(self):
        error = SerializationError("bad value", key="k")
        assert isinstance(error, PersistenceError)
        assert error.category == ErrorCategory.SERIALIZATION

    def test_configuration_error_is_high_severity(self):
        error = ConfigurationError("bad", context={"field": "max_entries"})
        assert error.severity == ErrorSeverity.HIGH
        assert error.context == {"field": "max_entries"}


class TestErrorCollector:
    def test_add_cache_error(self):
        collector = ErrorCollector()
        collector.add_error(PersistenceError("disk", key="k"))
        assert len(collector.errors) == 1
        assert collector.errors[0].key == "k"
        assert collector.get_summary() == {
            "total_errors": 1,
            "by_category": {"persistence": 1},
        }

    def test_classifies_plain_exceptions(self):
        collector = ErrorCollector()
        collector.add_error(ValueError("x"))
        collector.add_error(OSError("y"))
        collector.add_error(TimeoutError("z"))
        collector.add_error(RuntimeError("w"))
        summary = collector.get_summary()["by_category"]
        assert summary == {"serialization": 1, "persistence": 1, "timeout": 1, "unknown": 1}

    def test_max_errors_bounds_list_not_counts(self):
        collector = ErrorCollector(max_errors=2)
        for _ in range(5):
            collector.add_error(OSError("disk"))
        assert len(collector.errors) == 2
        assert collector.get_summary()["total_errors"] == 5

    def test_get_errors_by_category_and_clear(self):
        collector = ErrorCollector()
        collector.add_error(OSError("disk"))
        collector.add_error(ValueError("bad"))
        assert len(collector.get_errors_by_category(ErrorCategory.PERSISTENCE)) == 1
        collector.clear()
        assert collector.errors == []
        assert collector.get_summary()["total_errors"] == 0


class TestHandlePersistenceError:
    def test_os_error_becomes_persistence_error(self):
        collector = ErrorCollector()
        error = handle_persistence_error("k", "save", OSError("disk full"), collector)
        assert type(error) is PersistenceError
        assert error.key == "k"
        assert collector.get_summary()["by_category"] == {"persistence": 1}

    def test_type_error_becomes_serialization_error(self):
        error = handle_persistence_error("k", "save", TypeError("not serializable"))
        assert isinstance(error, SerializationError)

    def test_existing_error_gets_key(self):
        original = SerializationError("bad")
        error = handle_persistence_error("k", "save", original)
        assert error is original
        assert error.key == "k"

    def test_logs_through_logger(self):
        calls = []

        class Recorder:
            def log_persistence_error(self, key, operation, error):
                calls.append((key, operation, error))

        handle_persistence_error("k", "load", OSError("gone"), logger=Recorder())
        assert calls == [("k", "load", "gone")]
