"""Tests for tiercache.cli.main module."""

from __future__ import annotations

import asyncio

import orjson
import pytest
from click.testing import CliRunner

from tiercache.cli.main import _format_ms, cli
from tiercache.core.config import now_ms
from tiercache.persistence.adapters import JsonFilePersistence
from tiercache.persistence.records import make_record
from tiercache.utils.logging_config import JsonFormatter, configure_logging, get_logger


@pytest.fixture(autouse=True)
def quiet_logging():
    yield
    configure_logging(enable_console=False)


async def _seed(directory):
    persistence = JsonFilePersistence(directory)
    now = now_ms()
    await persistence.save("page_state_orders", make_record({"activeTab": "list"}, now, 60_000))
    await persistence.save("persist_form_order_form", make_record({"id": 1}, now - 10_000, 1000))
    await persistence.save("orders_activeTab", "details")


class TestFormatMs:
    @pytest.mark.parametrize(
        "value, expected",
        [(None, "-"), (1500, "2s"), (90_000, "1.5m"), (5_400_000, "1.5h"), (172_800_000, "2.0d")],
    )
    def test_format(self, value, expected):
        assert _format_ms(value) == expected


class TestPoliciesCommand:
    def test_json_output(self):
        result = CliRunner().invoke(cli, ["policies", "--format", "json"])
        assert result.exit_code == 0
        rows = orjson.loads(result.stdout)
        orders = next(row for row in rows if row["resource_key"] == "orders")
        assert orders["category"] == "page"
        assert orders["auto_refresh"] is True
        assert orders["refresh_interval_ms"] == 180_000
        assert orders["priority"] == "HIGH"

    def test_table_output(self):
        result = CliRunner().invoke(cli, ["policies"])
        assert result.exit_code == 0
        assert "Cache policies" in result.stdout
        assert "dashboard" in result.stdout

    def test_custom_policy_file(self, tmp_path):
        path = tmp_path / "policies.toml"
        path.write_text(
            "[policies]\ndata_types = {}\nforms = {}\n"
            "[policies.pages.kanban]\nttl = 1000\npersist = true\n",
            encoding="utf-8",
        )
        result = CliRunner().invoke(cli, ["policies", "--config", str(path), "--format", "json"])
        assert result.exit_code == 0
        rows = orjson.loads(result.stdout)
        assert [row["resource_key"] for row in rows] == ["kanban"]

    def test_json_log_format(self):
        result = CliRunner().invoke(cli, ["--log-format", "json", "policies", "--format", "json"])
        assert result.exit_code == 0
        handlers = get_logger().logger.handlers
        assert handlers and isinstance(handlers[0].formatter, JsonFormatter)

    def test_invalid_policy_file(self, tmp_path):
        path = tmp_path / "policies.toml"
        path.write_text("[policies.pages.orders]\nauto_refresh = true\n", encoding="utf-8")
        result = CliRunner().invoke(cli, ["policies", "--config", str(path)])
        assert result.exit_code == 1


class TestInspectCommand:
    def test_empty_directory(self, tmp_path):
        result = CliRunner().invoke(cli, ["inspect", str(tmp_path)])
        assert result.exit_code == 0
        assert "No durable entries" in result.stdout

    def test_json_rows(self, tmp_path):
        asyncio.run(_seed(tmp_path))
        result = CliRunner().invoke(cli, ["inspect", str(tmp_path), "--format", "json"])
        assert result.exit_code == 0
        rows = {row["key"]: row for row in orjson.loads(result.stdout)}
        assert set(rows) == {"page_state_orders", "persist_form_order_form", "orders_activeTab"}
        assert rows["page_state_orders"]["remaining_ms"] > 0
        assert rows["persist_form_order_form"]["remaining_ms"] <= 0
        assert rows["orders_activeTab"]["age_ms"] is None
        assert all(row["size_bytes"] > 0 for row in rows.values())

    def test_table(self, tmp_path):
        asyncio.run(_seed(tmp_path))
        result = CliRunner().invoke(cli, ["inspect", str(tmp_path)])
        assert result.exit_code == 0
        assert "orders_activeTab" in result.stdout
        assert "expired" in result.stdout


class TestPurgeCommand:
    def test_purge_expired(self, tmp_path):
        asyncio.run(_seed(tmp_path))
        result = CliRunner().invoke(cli, ["purge", str(tmp_path), "--expired"])
        assert result.exit_code == 0
        assert "Removed 1 durable entries" in result.stdout
        remaining = asyncio.run(JsonFilePersistence(tmp_path).keys())
        assert sorted(remaining) == ["orders_activeTab", "page_state_orders"]

    def test_purge_by_pattern(self, tmp_path):
        asyncio.run(_seed(tmp_path))
        result = CliRunner().invoke(cli, ["purge", str(tmp_path), "--pattern", "orders"])
        assert result.exit_code == 0
        assert "Removed 2 durable entries" in result.stdout

    def test_purge_everything(self, tmp_path):
        asyncio.run(_seed(tmp_path))
        result = CliRunner().invoke(cli, ["--debug", "purge", str(tmp_path)])
        assert result.exit_code == 0
        assert "Removed 3 durable entries" in result.stdout

    def test_missing_directory(self, tmp_path):
        result = CliRunner().invoke(cli, ["purge", str(tmp_path / "missing")])
        assert result.exit_code != 0
