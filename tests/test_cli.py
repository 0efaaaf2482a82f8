from __future__ import annotations

import json
from datetime import date

import pytest

import eurowatch.cli as cli
import eurowatch.config.settings as config_settings
from eurowatch.pipeline import PipelineSummary


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    monkeypatch.setattr(
        config_settings,
        "_DEFAULT_CONFIG_LOCATIONS",
        (tmp_path / "eurowatch.json", tmp_path / "config" / "config.json"),
    )
    for key in list(config_settings.os.environ):
        if key.startswith("EUROWATCH_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("EUROWATCH_STORAGE_DATABASE_URL", f"sqlite:///{(tmp_path / 'cli.db').as_posix()}")


@pytest.mark.parametrize("argv", [["run-pipeline"], ["classify-topics", "--dry-run"]])
def test_missing_api_key_exits_with_error(argv):
    assert cli.main(argv) == 1


def test_console_script_prepends_command():
    assert cli.run_pipeline_main([]) == 1
    assert cli.classify_topics_main(["--limit", "5"]) == 1


def test_run_pipeline_prints_summary(monkeypatch, capsys):
    monkeypatch.setenv("EUROWATCH_GEMINI_API_KEY", "secret")
    closed = []

    class DummyPipeline:
        def run(self, *, target_date=None):
            return PipelineSummary(success=True, date=target_date, sitting_id="sitting-2024-03-12", speeches_count=2)

    class DummyResources:
        pipeline = DummyPipeline()

        def close(self):
            closed.append(True)

    monkeypatch.setattr(cli, "create_pipeline", lambda config: DummyResources())

    exit_code = cli.main(["run-pipeline", "--date", "2024-03-12"])

    assert exit_code == 0
    assert closed == [True]
    output = json.loads(capsys.readouterr().out)
    assert output["date"] == "2024-03-12"
    assert output["speeches_count"] == 2


def test_run_pipeline_without_new_sitting_exits_non_zero(monkeypatch, capsys):
    monkeypatch.setenv("EUROWATCH_GEMINI_API_KEY", "secret")

    class DummyResources:
        class pipeline:
            @staticmethod
            def run(*, target_date=None):
                return PipelineSummary(success=False, reason="no new sittings")

        def close(self):
            pass

    monkeypatch.setattr(cli, "create_pipeline", lambda config: DummyResources())

    assert cli.main(["run-pipeline"]) == 1
    assert json.loads(capsys.readouterr().out)["reason"] == "no new sittings"


def test_prune_documents_runs_without_api_key():
    assert cli.main(["prune-documents", "--before", date(2024, 1, 1).isoformat()]) == 0


def test_invalid_date_is_rejected():
    with pytest.raises(SystemExit):
        cli.main(["run-pipeline", "--date", "12.03.2024"])
