"""Conversation store tests."""

from dataclasses import replace

from another_i.config.strings import NEW_CONVERSATION_TITLE
from another_i.core import store as ops
from another_i.core.models import ConversationTag, Folder, Role
from another_i.core.store import ConversationStore

from conftest import NOW, make_conversation, make_message


def ids(folder: Folder):
    return [c.id for c in folder.conversations]


class TestPureOperations:
    def test_default_collection_has_one_folder(self):
        folders = ops.default_folders()
        assert len(folders) == 1
        assert folders[0].conversations == ()

    def test_create_prepends_to_first_folder(self, two_folders):
        new = ops.create_conversation(two_folders, None, make_conversation("conv-new"))
        assert ids(new[0]) == ["conv-new", "conv-a", "conv-b"]
        assert ids(two_folders[0]) == ["conv-a", "conv-b"]

    def test_create_rejects_duplicate_id(self, two_folders):
        dup = make_conversation("conv-c")
        assert ops.create_conversation(two_folders, "folder-1", dup) is two_folders

    def test_delete_folder_keeps_last_folder(self):
        folders = ops.default_folders()
        assert ops.delete_folder(folders, folders[0].id) is folders

    def test_delete_folder_drops_its_conversations(self, two_folders):
        new = ops.delete_folder(two_folders, "folder-2")
        assert [f.id for f in new] == ["folder-1"]
        assert ops.find_conversation(new, "conv-c") is None

    def test_move_transfers_ownership(self, two_folders):
        new = ops.move_conversation(two_folders, "conv-b", "folder-2")
        assert ids(new[0]) == ["conv-a"]
        assert ids(new[1]) == ["conv-b", "conv-c"]
        assert len(ops.all_conversations(new)) == 3

    def test_move_to_same_folder_is_noop(self, two_folders):
        assert ops.move_conversation(two_folders, "conv-a", "folder-1") is two_folders

    def test_move_unknown_is_noop(self, two_folders):
        assert ops.move_conversation(two_folders, "conv-x", "folder-2") is two_folders

    def test_rename_folder_ignores_blank(self, two_folders):
        assert ops.rename_folder(two_folders, "folder-2", "   ") is two_folders
        assert ops.rename_folder(two_folders, "folder-2", "趣味")[1].name == "趣味"

    def test_set_pinned_unchanged_is_noop(self, two_folders):
        assert ops.set_pinned(two_folders, "conv-a", False) is two_folders

    def test_append_updates_timestamp(self, two_folders):
        later = NOW.replace(hour=18)
        new = ops.append_messages(two_folders, "conv-a", [make_message("assistant", "ok", "m-x")], now=later)
        conv = ops.find_conversation(new, "conv-a")
        assert [m.id for m in conv.messages] == ["m-a1", "m-x"]
        assert conv.updated_at == later

    def test_setters_refresh_updated_at_only(self, two_folders):
        later = NOW.replace(hour=20)
        tag = ConversationTag(id="tag-1", name="重要")
        before = ops.find_conversation(two_folders, "conv-a")
        cases = [
            (ops.set_pinned(two_folders, "conv-a", True, now=later), {"is_pinned": True}),
            (ops.add_tag(two_folders, "conv-a", tag, now=later), {"tags": (tag,)}),
            (ops.set_document_content(two_folders, "conv-a", "# メモ", now=later), {"document_content": "# メモ"}),
            (ops.set_title(two_folders, "conv-a", "新しい題", now=later), {"title": "新しい題"}),
        ]
        for folders, changed in cases:
            after = ops.find_conversation(folders, "conv-a")
            assert after.updated_at == later
            assert after == replace(before, updated_at=later, **changed)
            assert ops.find_conversation(folders, "conv-b") is ops.find_conversation(two_folders, "conv-b")

    def test_remove_tag_refreshes_updated_at(self, two_folders):
        tag = ConversationTag(id="tag-1", name="重要")
        tagged = ops.add_tag(two_folders, "conv-a", tag, now=NOW)
        later = NOW.replace(hour=21)
        after = ops.find_conversation(ops.remove_tag(tagged, "conv-a", "tag-1", now=later), "conv-a")
        assert after.tags == ()
        assert after.updated_at == later

    def test_set_folder_expanded(self, two_folders):
        collapsed = ops.set_folder_expanded(two_folders, "folder-2", False)
        assert collapsed[1].is_expanded is False
        assert collapsed[0] is two_folders[0]
        assert ops.set_folder_expanded(collapsed, "folder-2", False) is collapsed
        assert ops.set_folder_expanded(two_folders, "missing", False) is two_folders

    def test_append_to_missing_conversation_is_noop(self, two_folders):
        assert ops.append_messages(two_folders, "gone", [make_message("user", "x", "m")]) is two_folders

    def test_import_skips_existing_ids(self, two_folders):
        incoming = [make_conversation("conv-a"), make_conversation("imported-1"), make_conversation("imported-1")]
        new = ops.import_conversations(two_folders, incoming, "folder-2")
        assert ids(new[1]) == ["imported-1", "conv-c"]
        assert ids(new[0]) == ["conv-a", "conv-b"]

    def test_most_recent(self, two_folders):
        assert ops.most_recent_conversation_id(two_folders) == "conv-b"
        assert ops.most_recent_conversation_id(ops.default_folders()) is None


class TestEditMessage:
    def _folders(self):
        conv = make_conversation(
            "c1",
            messages=[
                make_message("user", "最初", "u1"),
                make_message("assistant", "返事", "a1", 1),
                make_message("user", "次", "u2", 2),
                make_message("assistant", "また返事", "a2", 3),
            ],
        )
        return (Folder("folder-1", "会話", (conv,)),)

    def test_edit_discards_later_messages(self):
        new = ops.edit_message(self._folders(), "c1", "u1", "書き直し", now=NOW)
        conv = ops.find_conversation(new, "c1")
        assert [(m.id, m.content) for m in conv.messages] == [("u1", "書き直し")]

    def test_edit_assistant_message_is_noop(self):
        folders = self._folders()
        assert ops.edit_message(folders, "c1", "a1", "改ざん") is folders

    def test_edit_unknown_message_is_noop(self):
        folders = self._folders()
        assert ops.edit_message(folders, "c1", "nope", "x") is folders


class TestListSorted:
    def test_pinned_first_preserving_order(self):
        convs = [
            make_conversation("c1"),
            make_conversation("c2", is_pinned=True),
            make_conversation("c3"),
            make_conversation("c4", is_pinned=True),
        ]
        assert [c.id for c in ops.list_sorted(convs)] == ["c2", "c4", "c1", "c3"]

    def test_duplicate_ids_keep_first(self):
        first = make_conversation("c1", title="first")
        convs = [first, make_conversation("c2"), make_conversation("c1", title="second")]
        result = ops.list_sorted(convs)
        assert [c.id for c in result] == ["c1", "c2"]
        assert result[0] is first

    def test_title_preview(self):
        assert ops.title_preview("a" * 30, 30) == "a" * 30
        assert ops.title_preview("a" * 31, 30) == "a" * 30 + "..."


class TestConversationStore:
    def test_mutation_notifies_listeners(self, two_folders):
        store = ConversationStore(two_folders)
        seen = []
        store.subscribe(seen.append)
        assert store.set_pinned("conv-a", True) is True
        assert store.set_pinned("conv-a", True) is False
        assert len(seen) == 1
        assert seen[0] is store.folders

    def test_failing_listener_does_not_block_write(self, two_folders):
        store = ConversationStore(two_folders)

        def broken(_):
            raise RuntimeError("disk full")

        store.subscribe(broken)
        assert store.set_title("conv-a", "新タイトル") is True
        assert store.get("conv-a").title == "新タイトル"

    def test_new_conversation_is_placeholder_and_active(self, two_folders):
        store = ConversationStore(two_folders)
        conv_id = store.new_conversation(now=NOW)
        assert store.active_conversation_id == conv_id
        assert store.folders[0].conversations[0].id == conv_id
        assert store.active_conversation.title == NEW_CONVERSATION_TITLE

    def test_delete_active_clears_selection(self, two_folders):
        store = ConversationStore(two_folders, active_conversation_id="conv-a")
        assert store.delete_conversation("conv-a") is True
        assert store.active_conversation_id is None

    def test_delete_folder_of_active_clears_selection(self, two_folders):
        store = ConversationStore(two_folders, active_conversation_id="conv-c")
        assert store.delete_folder("folder-2") is True
        assert store.active_conversation_id is None

    def test_select_most_recent(self, two_folders):
        store = ConversationStore(two_folders)
        assert store.select_most_recent() == "conv-b"

    def test_select_unknown_keeps_selection(self, two_folders):
        store = ConversationStore(two_folders, active_conversation_id="conv-a")
        assert store.select("missing") is False
        assert store.active_conversation_id == "conv-a"

    def test_import_selects_first_imported(self, two_folders):
        store = ConversationStore(two_folders)
        imported = [make_conversation("imported-9"), make_conversation("imported-8")]
        assert store.import_conversations(imported, "folder-1") is True
        assert store.active_conversation_id == "imported-9"

    def test_toggle_pinned(self, two_folders):
        store = ConversationStore(two_folders)
        store.toggle_pinned("conv-b")
        assert [c.id for c in store.list_sorted("folder-1")] == ["conv-b", "conv-a"]
        store.toggle_pinned("conv-b")
        assert store.get("conv-b").is_pinned is False

    def test_tags_through_store(self, two_folders):
        store = ConversationStore(two_folders)
        tag = ConversationTag(id="tag-1", name="重要")
        store.add_tag("conv-a", tag)
        store.add_tag("conv-c", tag)
        assert store.all_tags() == [tag]
        store.remove_tag("conv-a", "tag-1")
        store.remove_tag("conv-c", "tag-1")
        assert store.all_tags() == []

    def test_document_edit(self, two_folders):
        store = ConversationStore(two_folders)
        assert store.set_document_content("conv-a", "# メモ") is True
        assert store.get("conv-a").document_content == "# メモ"

    def test_edit_message_keeps_user_role(self, two_folders):
        store = ConversationStore(two_folders)
        assert store.edit_message("conv-a", "m-a1", "やっぱり家で過ごす") is True
        msg = store.get("conv-a").messages[-1]
        assert msg.role is Role.USER
        assert msg.content == "やっぱり家で過ごす"
