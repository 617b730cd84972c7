# tests/integration/test_cli.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from typer.testing import CliRunner

from feasibility_api.tasks.cli import app

runner = CliRunner()


def _write(tmp_path: Path, data: Any) -> Path:
    path = tmp_path / "answers.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_analyze_prints_projection(tmp_path: Path, ready_answers: dict[str, Any]) -> None:
    result = runner.invoke(app, ["analyze", str(_write(tmp_path, ready_answers)), "--years", "3"])

    assert result.exit_code == 0, result.output
    out = json.loads(result.stdout)
    assert len(out["analysis"]["years"]) == 3
    assert out["statements"]["incomeStatement"]["rows"][0][1] == "15,000.00"


def test_completeness_accepts_record_keyed_files(
    tmp_path: Path, ready_answers: dict[str, Any]
) -> None:
    data = {
        "feasibilityStudyAnswers": {k: v for k, v in ready_answers.items() if k != "fullName"},
        "userInfo": {"fullName": "Dana Reyes"},
    }

    result = runner.invoke(app, ["completeness", str(_write(tmp_path, data))])

    assert result.exit_code == 0, result.output
    out = json.loads(result.stdout)
    assert out["reportReady"] is True
    assert out["blocking"] == []


def test_payload_respects_language_and_size(
    tmp_path: Path, ready_answers: dict[str, Any]
) -> None:
    path = _write(tmp_path, ready_answers)

    result = runner.invoke(app, ["payload", str(path), "--language", "ar", "--max-chars", "20000"])

    assert result.exit_code == 0, result.output
    out = json.loads(result.stdout)
    assert out["language"] == "ar"
    assert out["coverPage"]["projectName"] == "Harbor Bakery"
    assert out["constraints"]["forceFinancialSectionId"] == "1-18"


def test_invalid_json_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    result = runner.invoke(app, ["analyze", str(path)])

    assert result.exit_code != 0


def test_non_object_json_is_rejected(tmp_path: Path) -> None:
    result = runner.invoke(app, ["completeness", str(_write(tmp_path, [1, 2]))])
    assert result.exit_code != 0
