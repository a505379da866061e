import json
import shutil
from pathlib import Path

import pandas as pd
from typer.testing import CliRunner

from flowcheck.cli import app

CASES = Path(__file__).parent / "cases"
runner = CliRunner()


def test_validate_valid_workflow(catalog_path):
    result = runner.invoke(app, ["validate", "-i", str(CASES / "A_single_webhook" / "workflow.json"),
                                 "--catalog", str(catalog_path)])
    assert result.exit_code == 0, result.output
    assert "Valid:       True" in result.stdout
    assert "NO_CONNECTIONS" in result.stdout


def test_validate_invalid_workflow_exits_1(catalog_path):
    result = runner.invoke(app, ["validate", "-i", str(CASES / "B_connection_uses_id" / "workflow.json"),
                                 "-c", str(catalog_path)])
    assert result.exit_code == 1
    assert "CONNECTION_USES_ID" in result.stdout


def test_validate_json_and_report(tmp_path, catalog_path):
    out = tmp_path / "reports" / "result.json"
    result = runner.invoke(app, ["validate", "-i", str(CASES / "C_agent_three_models" / "workflow.json"),
                                 "-c", str(catalog_path), "--json", "--out", str(out)])
    assert result.exit_code == 1
    payload = json.loads(result.stdout.split("\n", 1)[1])
    assert payload["valid"] is False
    assert [e["code"] for e in payload["errors"]] == ["TOO_MANY_LANGUAGE_MODELS"]
    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["profile"] == "runtime"


def test_validate_unreadable_workflow_exits_2(tmp_path):
    bad = tmp_path / "broken.json"
    bad.write_text("{not json", encoding="utf-8")
    result = runner.invoke(app, ["validate", "-i", str(bad)])
    assert result.exit_code == 2


def test_validate_rejects_unknown_profile():
    result = runner.invoke(app, ["validate", "-i", str(CASES / "A_single_webhook" / "workflow.json"),
                                 "-p", "paranoid"])
    assert result.exit_code != 0


def test_validate_catalog_from_env(monkeypatch, catalog_path):
    monkeypatch.setenv("FLOWCHECK_CATALOG", str(catalog_path))
    result = runner.invoke(app, ["validate", "-i", str(CASES / "D_vector_store_without_embeddings" / "workflow.json")])
    assert result.exit_code == 1
    assert "MISSING_EMBEDDING" in result.stdout


def test_node_command(tmp_path):
    config = tmp_path / "http.json"
    config.write_text(json.dumps({"method": "GET"}), encoding="utf-8")
    result = runner.invoke(app, ["node", "-t", "n8n-nodes-base.httpRequest", "-c", str(config)])
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert [e["code"] for e in payload["errors"]] == ["MISSING_REQUIRED"]

    config.write_text(json.dumps({"url": "https://example.com"}), encoding="utf-8")
    ok = runner.invoke(app, ["node", "-t", "n8n-nodes-base.httpRequest", "-c", str(config), "-p", "minimal"])
    assert ok.exit_code == 0
    assert json.loads(ok.stdout)["valid"] is True


def test_batch_writes_csv(tmp_path, catalog_path):
    folder = tmp_path / "workflows"
    folder.mkdir()
    for name in ("A_single_webhook", "B_connection_uses_id"):
        shutil.copy(CASES / name / "workflow.json", folder / f"{name}.json")
    (folder / "notes.json").write_text("[]", encoding="utf-8")
    (folder / "corrupt.json").write_text("{", encoding="utf-8")

    out = tmp_path / "out" / "report.csv"
    result = runner.invoke(app, ["batch", "-d", str(folder), "-o", str(out), "-c", str(catalog_path)])
    assert result.exit_code == 0, result.output
    assert "[ok] 1/3 workflows valid" in result.stdout

    df = pd.read_csv(out)
    assert list(df.columns) == ["file", "valid", "errors", "warnings", "nodes", "connections", "first_error"]
    rows = df.set_index("file")
    assert bool(rows.loc["A_single_webhook.json", "valid"]) is True
    assert bool(rows.loc["B_connection_uses_id.json", "valid"]) is False
    assert bool(rows.loc["corrupt.json", "valid"]) is False
    assert "notes.json" not in rows.index
