"""
Tests for the command-line entry point and environment configuration.
"""

import json

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import cli
from utils.config import Config
from utils.formatting import format_currency, format_percent, format_range


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("INGESTION_RUNS_PATH", raising=False)
    return tmp_path / "data"


@pytest.fixture
def write_json(tmp_path):
    def _write(name, payload):
        path = tmp_path / name
        path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        return str(path)
    return _write


class TestConfig:
    def test_defaults(self, monkeypatch):
        for name in ("DATA_DIR", "DEFAULT_TOP_K", "MAX_POOL_SIZE", "HEDONIC_WEIGHTED_SHARE"):
            monkeypatch.delenv(name, raising=False)
        config = Config.load()

        assert config.default_top_k == 25
        assert config.max_pool_size == 5000
        assert config.hedonic_weighted_share == 0.55
        assert config.iqr_multiplier == 1.5
        assert config.missing_coordinates_as_origin is False

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        monkeypatch.setenv("DEFAULT_TOP_K", "7")
        monkeypatch.setenv("MISSING_COORDINATES_AS_ORIGIN", "true")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        config = Config.load()

        assert config.default_top_k == 7
        assert config.missing_coordinates_as_origin is True
        assert config.log_level == "DEBUG"
        assert config.ingestion_runs_path == str(tmp_path / "ingestion-runs.json")


class TestCommands:
    def test_ingest_then_list(self, data_dir, write_json, capsys):
        path = write_json(
            "records.json",
            {
                "transactions": [
                    {
                        "source": "gov",
                        "sourceRecordId": "1",
                        "address": "הרצל 10 תל אביב",
                        "price": 2_000_000,
                        "transactionDate": "2024-01-10",
                    }
                ]
            },
        )

        assert cli.main(["ingest", path]) == 0
        run = json.loads(capsys.readouterr().out)
        assert run["summary"]["cleaned"] == 1
        assert (data_dir / "ingestion-runs.json").exists()

        assert cli.main(["runs"]) == 0
        listing = json.loads(capsys.readouterr().out)
        assert listing["runs"][0]["runId"] == run["runId"]

    def test_appraise(self, data_dir, write_json, capsys):
        subject = {"id": "s", "lat": 32.08, "lng": 34.78, "sizeSqm": 80}
        path = write_json(
            "search.json",
            {
                "subject": subject,
                "comparablesPool": [dict(subject, id=f"c{i}", salePrice=1_500_000) for i in range(4)],
            },
        )

        assert cli.main(["appraise", path, "--strategy", "mean", "--top-k", "2"]) == 0
        out = json.loads(capsys.readouterr().out)
        assert len(out["search"]["comparables"]) == 2
        assert out["valuation"]["range"]["mid"] == 1_500_000

    def test_unknown_run_exits_nonzero(self, data_dir, capsys):
        assert cli.main(["show-run", "ing_missing"]) == 1
        assert "Ingestion run not found" in capsys.readouterr().err

    def test_missing_file(self, data_dir, tmp_path, capsys):
        assert cli.main(["ingest", str(tmp_path / "nope.json")]) == 1
        assert "File not found" in capsys.readouterr().err


class TestFormatting:
    def test_currency(self):
        assert format_currency(1_250_000) == "₪1,250,000"
        assert format_currency(10, "USD") == "$10"
        assert format_currency(None) == "N/A"

    def test_range(self):
        assert format_range(940_000, 1_060_000) == "₪940,000 - ₪1,060,000"

    def test_percent(self):
        assert format_percent(0.875) == "87.5%"
