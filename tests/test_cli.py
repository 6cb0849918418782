"""Tests for the command-line interface."""

import json
import logging
from unittest.mock import patch

import pytest

from carda.cli import main, parse_field_choices
from carda.deduplication import ExplicitValue, Side
from carda.errors import MalformedFieldChoiceError
from carda.repositories import JsonContactStore


@pytest.fixture(autouse=True)
def isolated_logging(monkeypatch):
    """Keep the CLI's logging setup from leaking into other tests."""
    for name in ("CARDA_DATA_DIR", "CARDA_DEDUPE_THRESHOLD", "CARDA_LOG_LEVEL", "CARDA_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def data_dir(json_store):
    return str(json_store.data_dir)


def run(data_dir, *args):
    return main(["--data-dir", data_dir, "--log-level", "WARNING", *args])


class TestScan:
    """Test the scan command."""

    def test_lists_groups(self, data_dir, capsys):
        assert run(data_dir, "scan") == 0

        out = capsys.readouterr().out
        assert "Duplicate Groups" in out
        assert "c-jane" in out
        assert "c-jdoe" in out
        assert "Email" in out

    def test_no_duplicates_above_threshold(self, data_dir, capsys):
        assert run(data_dir, "scan", "--threshold", "100.5") == 0

        assert "No duplicates found" in capsys.readouterr().out

    def test_suggest(self, data_dir, capsys):
        assert run(data_dir, "scan", "--suggest", "--limit", "1") == 0

        assert "c-jane" in capsys.readouterr().out


class TestMerge:
    """Test the merge command."""

    def test_merge_with_choices(self, data_dir, capsys):
        code = run(
            data_dir,
            "merge", "c-jane", "c-jdoe",
            "--choose", "title=left",
            "--set", "company=Acme Holdings",
        )

        assert code == 0
        contacts = JsonContactStore(data_dir).load_all_contacts()
        assert [c.id for c in contacts] == ["c-jane", "c-bob"]
        assert contacts[0].title == ""
        assert contacts[0].company == "Acme Holdings"
        assert "Merged Contact" in capsys.readouterr().out

    def test_unknown_contact(self, data_dir, capsys):
        assert run(data_dir, "merge", "c-jane", "c-ghost") == 1

        assert "c-ghost" in capsys.readouterr().out
        assert len(JsonContactStore(data_dir).load_all_contacts()) == 3

    def test_malformed_choice(self, data_dir):
        assert run(data_dir, "merge", "c-jane", "c-jdoe", "--choose", "nickname=left") == 1
        assert run(data_dir, "merge", "c-jane", "c-jdoe", "--choose", "title=middle") == 1

        assert JsonContactStore(data_dir).load_merge_history() == []


class TestUndoAndHistory:
    """Test the undo and history commands."""

    def test_undo_after_merge(self, data_dir, capsys):
        run(data_dir, "merge", "c-jane", "c-jdoe")

        assert run(data_dir, "history") == 0
        assert "c-jane" in capsys.readouterr().out

        assert run(data_dir, "undo") == 0
        assert len(JsonContactStore(data_dir).load_all_contacts()) == 3

    def test_nothing_to_undo(self, data_dir, capsys):
        assert run(data_dir, "undo") == 1

        assert "Nothing to undo" in capsys.readouterr().out

    def test_empty_history(self, data_dir, capsys):
        assert run(data_dir, "history") == 0

        assert "No merges recorded" in capsys.readouterr().out


class TestMisc:
    """Test argument handling and config generation."""

    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_generate_config(self, capsys):
        assert main(["generate-config"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["dedupe"]["threshold"] == 60.0

    def test_invalid_config_file(self, data_dir, tmp_path):
        config_path = tmp_path / "carda.json"
        config_path.write_text(json.dumps({"dedupe": {"threshold": 100.5}}), encoding="utf-8")

        assert run(data_dir, "--config", str(config_path), "scan") == 1

    def test_malformed_config_file(self, data_dir, tmp_path, capsys):
        config_path = tmp_path / "carda.json"
        config_path.write_text("{not json", encoding="utf-8")

        assert run(data_dir, "--config", str(config_path), "scan") == 1
        assert "Error" in capsys.readouterr().out

    def test_error_logged_with_command_context(self, data_dir):
        handler_logger = logging.getLogger("carda.errors.handlers")

        with patch.object(handler_logger, "log") as log:
            assert run(data_dir, "merge", "c-jane", "c-ghost") == 1

        context = log.call_args.kwargs["extra"]["context"]
        assert context["operation"] == "merge"
        assert context["details"] == {"data_dir": data_dir}

    def test_parse_field_choices(self):
        choices = parse_field_choices(["name=RIGHT"], ["company=Acme=Co"])

        assert choices == {"name": Side.RIGHT, "company": ExplicitValue("Acme=Co")}

    def test_parse_field_choices_rejects_missing_value(self):
        with pytest.raises(MalformedFieldChoiceError):
            parse_field_choices([], ["company"])
