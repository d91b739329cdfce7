import io
import json
from pathlib import Path

import pytest

from leptos_mcp.cli import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("LEPTOS_MCP_CONFIG", raising=False)
    monkeypatch.delenv("LEPTOS_MCP_LOG_LEVEL", raising=False)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "app.rs"
    path.write_text(text, encoding="utf-8")
    return path


def test_analyze_json(tmp_path: Path, capsys):
    path = _write(tmp_path, "let count = signal(0);\n")

    assert main(["analyze", str(path)]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["summary"] == {"warnings": 1, "errors": 0}
    assert payload["findings"][0]["rule_id"] == "LEP008"


def test_analyze_fail_on(tmp_path: Path):
    warning = _write(tmp_path, "let count = signal(0);\n")

    assert main(["analyze", str(warning), "--fail-on", "warning"]) == 1
    assert main(["analyze", str(warning), "--fail-on", "error"]) == 0


def test_analyze_text_from_stdin(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("let (a, set_a) = signal(0);\n"))

    assert main(["analyze", "-", "--format", "text"]) == 0
    assert capsys.readouterr().out.strip() == "No issues found. Code looks good!"


def test_analyze_missing_file(tmp_path: Path):
    with pytest.raises(SystemExit) as excinfo:
        main(["analyze", str(tmp_path / "missing.rs")])

    assert excinfo.value.code == 2


def test_rules_and_sections(capsys):
    assert main(["rules"]) == 0
    rules = json.loads(capsys.readouterr().out)
    assert [rule["rule_id"] for rule in rules][:3] == ["LEP001", "LEP002", "LEP003"]
    assert len(rules) == 13

    assert main(["sections"]) == 0
    sections = json.loads(capsys.readouterr().out)
    assert sections[0]["path"] == "getting-started"


def test_docs(capsys):
    assert main(["docs", "signals"]) == 0
    assert capsys.readouterr().out.startswith("# Signals")

    assert main(["docs", "websockets"]) == 1
    assert "not found" in capsys.readouterr().out


def test_bad_config_is_a_usage_error(tmp_path: Path):
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(tmp_path / "missing.json"), "rules"])

    assert excinfo.value.code == 2
