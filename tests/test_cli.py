"""
Tests for the CLI interface.
"""
import os
import tempfile
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from provider_limits.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from provider_limits.storage.errors import WriteError

runner = CliRunner()

FACTS_YAML = """
plans:
  - provider: openai
    plan: tier-1
    official_name: Usage Tier 1
rate_limits:
  - provider: openai
    plan: tier-1
    limit_type: rpm
    limit_value: 500
    reset_window_seconds: 60
    applies_to: account
  - provider: openai
    plan: tier-1
    limit_type: rpm
    limit_value: 120
    reset_window_seconds: 60
    applies_to: model
    model: gpt-4o
"""


@pytest.fixture
def db_path():
    """Path to a database file in a temporary directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield os.path.join(temp_dir, "cli.db")


def _invoke(db_path, *args):
    return runner.invoke(app, ["--db", db_path, *args])


class TestCLI:
    """Test CLI commands."""

    def test_no_command_prints_hint(self, db_path):
        result = _invoke(db_path)
        assert result.exit_code == EXIT_CODE_PASS
        assert "--help" in result.output

    def test_init_creates_database(self, db_path):
        result = _invoke(db_path, "init")

        assert result.exit_code == EXIT_CODE_PASS
        assert "Database initialized" in result.output
        assert os.path.exists(db_path)

    def test_init_bad_path_fails(self, db_path):
        bad_path = os.path.join(os.path.dirname(db_path), "missing", "x.db")
        result = _invoke(bad_path, "init")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error" in result.output

    def test_seed_then_query(self, db_path):
        assert _invoke(db_path, "seed").exit_code == EXIT_CODE_PASS

        result = _invoke(db_path, "query", "google-gemini", "free", "rpm", "--model", "gemini-2.0-flash")
        assert result.exit_code == EXIT_CODE_PASS
        assert "Effective rpm" in result.output
        assert "15 per minute (model)" in result.output

    def test_load_fact_file_and_query(self, db_path):
        facts = os.path.join(os.path.dirname(db_path), "facts.yaml")
        with open(facts, 'w', encoding='utf-8') as f:
            f.write(FACTS_YAML)

        result = _invoke(db_path, "load", facts)
        assert result.exit_code == EXIT_CODE_PASS
        assert "Loaded 3 facts" in result.output

        result = _invoke(db_path, "query", "openai", "tier-1", "rpm", "-m", "gpt-4o")
        assert "120 per minute (model)" in result.output

        result = _invoke(db_path, "query", "openai", "tier-1", "rpm", "-m", "o1")
        assert "500 per minute (account)" in result.output

    def test_load_invalid_file_fails(self, db_path):
        facts = os.path.join(os.path.dirname(db_path), "facts.yaml")
        with open(facts, 'w', encoding='utf-8') as f:
            f.write("rate_limits:\n  - provider: openai\n")

        result = _invoke(db_path, "load", facts)
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid fact file" in result.output

    def test_query_without_match(self, db_path):
        result = _invoke(db_path, "query", "openai", "tier-1", "rpm")
        assert result.exit_code == EXIT_CODE_PASS
        assert "No rpm limit found" in result.output

    def test_pricing_absent_is_not_failure(self, db_path):
        result = _invoke(db_path, "pricing", "openai", "gpt-5", "tier-1")
        assert result.exit_code == EXIT_CODE_PASS
        assert "No pricing stored" in result.output

    def test_record_price_and_history(self, db_path):
        result = _invoke(
            db_path, "record-price", "openai", "gpt-4o", "tier-1",
            "--input", "5", "--output", "15",
        )
        assert result.exit_code == EXIT_CODE_PASS
        assert "Recorded price change" in result.output

        _invoke(
            db_path, "record-price", "openai", "gpt-4o", "tier-1",
            "--input", "2.5", "--output", "10", "--reason", "cut",
        )
        result = _invoke(
            db_path, "record-price", "openai", "gpt-4o", "tier-1",
            "--input", "2.5", "--output", "10",
        )
        assert "Price unchanged" in result.output

        result = _invoke(db_path, "pricing", "openai", "gpt-4o", "tier-1")
        assert "$2.5000" in result.output

        result = _invoke(db_path, "history", "--provider", "openai")
        assert result.exit_code == EXIT_CODE_PASS
        assert "Pricing history" in result.output

    def test_history_filters_by_plan(self, db_path):
        _invoke(
            db_path, "record-price", "openai", "gpt-4o", "tier-1",
            "--input", "5", "--output", "15",
        )

        result = _invoke(db_path, "history", "--plan", "tier-2")
        assert result.exit_code == EXIT_CODE_PASS
        assert "No pricing history recorded" in result.output

        result = _invoke(db_path, "history", "--plan", "tier-1")
        assert result.exit_code == EXIT_CODE_PASS
        assert "Pricing history" in result.output

    def test_limits_lists_plan(self, db_path):
        _invoke(db_path, "seed")
        result = _invoke(db_path, "limits", "openai", "tier-1")
        assert result.exit_code == EXIT_CODE_PASS
        assert "Usage Tier 1" in result.output

    def test_write_error_exits_nonzero(self, db_path):
        with patch(
            'provider_limits.cli.main.ingest_bundle',
            side_effect=WriteError("disk full"),
        ):
            result = _invoke(db_path, "seed")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "disk full" in result.output

    def test_config_file(self, db_path):
        config = os.path.join(os.path.dirname(db_path), "store.yaml")
        with open(config, 'w', encoding='utf-8') as f:
            f.write(f"database:\n  path: {db_path}\n")

        result = runner.invoke(app, ["--config", config, "init"])
        assert result.exit_code == EXIT_CODE_PASS
        assert os.path.exists(db_path)

    def test_bad_config_file(self, db_path):
        result = runner.invoke(app, ["--config", db_path + ".missing", "init"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid configuration" in result.output
