"""CLI subcommand tests."""

import json

from another_i.main import main, open_state
from another_i.memory.repository import StateRepository

from test_chatgpt_import import export_record


def write_export(tmp_path):
    fp = tmp_path / "conversations.json"
    fp.write_text(json.dumps([export_record()], ensure_ascii=False), encoding="utf-8")
    return fp


class TestImportExport:
    def test_import_into_named_folder(self, tmp_path, db_path, capsys):
        fp = write_export(tmp_path)
        assert main(["--db", db_path, "import", str(fp), "--folder", "ChatGPT"]) == 0
        assert "Imported 1" in capsys.readouterr().out

        folders = StateRepository(db_path).load_folders()
        assert [f.name for f in folders] == ["会話", "ChatGPT"]
        assert [c.id for c in folders[1].conversations] == ["imported-abc"]

    def test_import_rejects_wrong_extension(self, tmp_path, db_path):
        fp = tmp_path / "conversations.csv"
        fp.write_text("[]", encoding="utf-8")
        assert main(["--db", db_path, "import", str(fp)]) == 1

    def test_reimport_skips_existing(self, tmp_path, db_path):
        fp = write_export(tmp_path)
        main(["--db", db_path, "import", str(fp)])
        main(["--db", db_path, "import", str(fp)])
        assert len(StateRepository(db_path).load_folders()[0].conversations) == 1

    def test_export_current_after_startup_selection(self, tmp_path, db_path):
        main(["--db", db_path, "import", str(write_export(tmp_path))])
        out = tmp_path / "out.md"
        assert main(["--db", db_path, "export", "--format", "markdown", "--scope", "current", "--out", str(out)]) == 0
        assert out.read_text(encoding="utf-8").startswith("# 旅行の計画")

    def test_search(self, tmp_path, db_path, capsys):
        main(["--db", db_path, "import", str(write_export(tmp_path))])
        capsys.readouterr()
        main(["--db", db_path, "search", "京都"])
        assert "<mark>京都</mark>" in capsys.readouterr().out


class TestSettingsAndLayout:
    def test_configure_and_clear(self, db_path, capsys):
        assert main(["--db", db_path, "settings", "--provider", "anthropic", "--api-key", "sk-ant-123456"]) == 0
        settings = StateRepository(db_path).load_ai_settings()
        assert settings.model == "claude-3-5-sonnet-20241022"

        main(["--db", db_path, "settings"])
        out = capsys.readouterr().out
        assert "sk-ant-123456" not in out
        assert "sk-a...3456" in out

        main(["--db", db_path, "settings", "--clear"])
        assert StateRepository(db_path).load_ai_settings() is None

    def test_model_override(self, db_path):
        main(["--db", db_path, "settings", "--provider", "anthropic", "--api-key", "k", "--model", "claude-3-opus-20240229"])
        assert StateRepository(db_path).load_ai_settings().model == "claude-3-opus-20240229"

    def test_layout(self, db_path, capsys):
        main(["--db", db_path, "layout"])
        assert capsys.readouterr().out.strip() == "chat-first"
        main(["--db", db_path, "layout", "editor-first"])
        assert capsys.readouterr().out.strip() == "editor-first"


class TestOpenState:
    def test_selects_most_recent_and_persists(self, db_path, two_folders):
        StateRepository(db_path).save_folders(two_folders)
        repo, store, _writer = open_state(db_path)
        assert store.active_conversation_id == "conv-b"
        store.set_pinned("conv-a", True)
        assert repo.load_folders()[0].conversations[0].is_pinned is True
