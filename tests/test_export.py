"""Export rendering tests."""

import json

from another_i.core.export import ExportFormat, ExportScope, export
from another_i.core.models import folders_from_list

from conftest import NOW, make_conversation, make_message

STAMP = int(NOW.timestamp() * 1000)


def sample_conversation():
    return make_conversation(
        "conv-x",
        "今日の振り返り!",
        [make_message("user", "疲れた", "u1"), make_message("assistant", "お疲れさまです", "a1", 1)],
    )


class TestCurrentScope:
    def test_markdown(self):
        content, filename, mime = export((), sample_conversation(), ExportFormat.MARKDOWN, ExportScope.CURRENT, NOW)
        assert filename == f"今日の振り返り_{STAMP}.md"
        assert mime == "text/markdown"
        assert content.startswith("# 今日の振り返り!\n\n📅 作成: 2024/5/1 09:30:00\n")
        assert "## 💭 ユーザー\n\n疲れた" in content
        assert "## 🤖 AI\n\nお疲れさまです" in content

    def test_json(self):
        content, filename, mime = export((), sample_conversation(), ExportFormat.JSON, ExportScope.CURRENT, NOW)
        assert filename.endswith(f"_{STAMP}.json")
        assert mime == "application/json"
        data = json.loads(content)
        assert data["id"] == "conv-x"
        assert data["messages"][1]["role"] == "assistant"


class TestAllScope:
    def test_json_round_trips(self, two_folders):
        content, filename, _ = export(two_folders, None, ExportFormat.JSON, ExportScope.ALL, NOW)
        assert filename == f"another-i-export_{STAMP}.json"
        assert folders_from_list(json.loads(content)) == two_folders

    def test_markdown_groups_by_folder(self, two_folders):
        content, filename, _ = export(two_folders, None, ExportFormat.MARKDOWN, ExportScope.ALL, NOW)
        assert filename == f"another-i-export_{STAMP}.md"
        assert content.index("# 会話") < content.index("# 週末の予定") < content.index("# 仕事\n")
        assert "# 読書メモ" in content

    def test_current_without_active_exports_everything(self, two_folders):
        _, filename, _ = export(two_folders, None, ExportFormat.MARKDOWN, ExportScope.CURRENT, NOW)
        assert filename.startswith("another-i-export_")
