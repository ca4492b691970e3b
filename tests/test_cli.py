"""Tests for the JSON command-line interface."""

import json

import pytest

from docmerge.__main__ import main


def run_cli(capsys, *argv):
    code = main(list(argv))
    out = capsys.readouterr().out
    return code, json.loads(out)


@pytest.mark.usefixtures("isolated_appdirs")
class TestCli:
    """Test suite for the docmerge CLI commands."""

    def test_load_table(self, capsys, make_csv):
        """Test that load-table reports fields, columns and the row count."""
        path = make_csv("Name,City\nAnn,Oslo\nBob,\n")

        code, response = run_cli(capsys, "load-table", str(path))

        assert code == 0
        assert response["success"] is True
        assert response["data"]["fields"] == ["Name", "City"]
        assert response["data"]["columns"]["City"] == ["Oslo", ""]
        assert response["data"]["count"] == 2

    def test_preview(self, capsys, make_csv, make_template):
        """Test that preview returns per-row substitutions without writing files."""
        template = make_template(["Hi @Name"])
        table = make_csv("Name\nAnn\nBob\n")

        code, response = run_cli(
            capsys, "preview", "--table", str(table), "--template", str(template), "--limit", "1"
        )

        assert code == 0
        assert response["data"]["preview_rows"] == [
            {"row": 1, "values": {"Name": "Ann"}, "missing": [], "text": "Hi Ann"}
        ]
        assert response["data"]["tokens"]["used"] == ["Name"]
        assert not (template.parent / "letter").exists()

    def test_merge(self, capsys, make_csv, make_template):
        """Test that merge writes the files and reports them."""
        template = make_template(["Hi @Name"])
        table = make_csv("Name\nAnn\nBob\n")

        code, response = run_cli(
            capsys, "merge", "--table", str(table), "--template", str(template),
            "--workers", "2", "--zip", "--no-progress",
        )

        data = response["data"]
        assert code == 0
        assert data["rows_processed"] == 2
        assert data["mode"] == "per-row"
        assert [p.rsplit("/", 1)[-1] for p in data["outputs"]] == ["letter_1.docx", "letter_2.docx"]
        assert data["archive"].endswith("letter.zip")

    def test_merge_missing_template(self, capsys, make_csv, tmp_path):
        """Test that a missing template is reported as a failure with exit code 1."""
        table = make_csv("Name\nAnn\n")

        code, response = run_cli(
            capsys, "merge", "--table", str(table),
            "--template", str(tmp_path / "nope.docx"), "--no-progress",
        )

        assert code == 1
        assert response["success"] is False
        assert "does not exist" in response["error"]

    def test_config_save(self, capsys, isolated_appdirs):
        """Test that config --save persists flags that later runs pick up."""
        code, response = run_cli(capsys, "config", "--mode", "combined", "--workers", "3", "--save")

        assert code == 0
        assert response["data"]["saved"] is True

        code, response = run_cli(capsys, "config")

        assert response["data"]["settings"]["mode"] == "combined"
        assert response["data"]["settings"]["workers"] == 3
        assert response["data"]["saved"] is False
