"""Test rule pack storage, export and import."""

import json
import re

import pytest
import yaml

from memodesk.storage.packs import (
    Memo,
    MemoRule,
    PackFormatError,
    PackStore,
    RulePack,
    export_pack,
    generate_pack_id,
    import_pack,
)


def sample_pack(pack_id="pack_1", name="Study Buddy", tags=("study",)) -> RulePack:
    return RulePack(
        id=pack_id,
        name=name,
        description="Tracks what I learn",
        author="ana",
        system_prompt="You are a tutor.",
        rules=[MemoRule("Topics", "List topics covered")],
        memos=[Memo("Topics", "algebra")],
        tags=list(tags),
    )


class TestRulePack:
    """Tests for RulePack parsing."""

    def test_round_trip_dict(self):
        pack = sample_pack()
        assert RulePack.from_dict(pack.to_dict()) == pack

    def test_aliases_from_older_documents(self):
        pack = RulePack.from_dict({
            "id": "p",
            "name": "Old",
            "author_name": "bo",
            "systemPrompt": "hi",
            "rules": [{"description": "Mood", "update_rule": "Track mood"}],
        })
        assert pack.author == "bo"
        assert pack.system_prompt == "hi"
        assert pack.rules == [MemoRule("Mood", "Track mood")]
        assert pack.version == "1.0.0"

    def test_missing_id(self):
        with pytest.raises(PackFormatError):
            RulePack.from_dict({"name": "no id"})

    def test_malformed_rules(self):
        with pytest.raises(PackFormatError):
            RulePack.from_dict({"id": "p", "rules": ["not an object"]})

    def test_matches(self):
        pack = sample_pack()
        assert pack.matches("")
        assert pack.matches("BUDDY")
        assert pack.matches("learn")
        assert pack.matches("ana")
        assert pack.matches("stud")
        assert not pack.matches("cooking")

    def test_slug(self):
        assert sample_pack(name="My  Great Pack").slug == "my-great-pack"
        assert sample_pack(name="  ").slug == "pack"

    def test_generate_pack_id(self):
        assert re.fullmatch(r"pack_\d+_[0-9a-z]{6}", generate_pack_id())


class TestPackStore:
    """Tests for PackStore."""

    def test_save_and_load(self, tmp_path):
        store = PackStore(tmp_path)
        pack = sample_pack()
        assert store.save_pack(pack)

        assert pack.created_at and pack.updated_at
        loaded = store.get_pack("pack_1")
        assert loaded == pack
        assert store.load_packs() == [pack]

    def test_broken_files_are_skipped(self, tmp_path):
        store = PackStore(tmp_path)
        store.save_pack(sample_pack())
        (store.packs_dir / "broken.json").write_text("{")
        (store.packs_dir / "noid.json").write_text('{"name": "x"}')
        assert [p.id for p in store.load_packs()] == ["pack_1"]

    def test_delete(self, tmp_path):
        store = PackStore(tmp_path)
        store.save_pack(sample_pack())
        assert store.delete_pack("pack_1")
        assert not store.delete_pack("pack_1")
        assert store.get_pack("pack_1") is None

    def test_search_and_tags(self, tmp_path):
        store = PackStore(tmp_path)
        store.save_pack(sample_pack("a", "Alpha", tags=("work",)))
        store.save_pack(sample_pack("b", "Beta", tags=("home", "work")))

        assert [p.id for p in store.search("beta")] == ["b"]
        assert [p.id for p in store.search(tag="work")] == ["a", "b"]
        assert [p.id for p in store.search(tag="home")] == ["b"]
        assert store.all_tags() == ["home", "work"]

    def test_current_pack(self, tmp_path):
        store = PackStore(tmp_path)
        assert store.load_current_pack() is None

        pack = sample_pack()
        assert store.save_current_pack(pack)
        assert store.load_current_pack() == pack


class TestExportImport:
    """Tests for export_pack and import_pack."""

    def test_export_json_default_name(self, tmp_path):
        path = export_pack(sample_pack(), tmp_path)
        assert path.name == "study-buddy.memopack.json"
        assert json.loads(path.read_text())["id"] == "pack_1"

    def test_export_yaml(self, tmp_path):
        path = export_pack(sample_pack(), tmp_path / "pack.yaml")
        data = yaml.safe_load(path.read_text())
        assert data["name"] == "Study Buddy"
        assert data["rules"][0]["update_rule"] == "List topics covered"

    @pytest.mark.parametrize("filename", ["export.json", "export.yml"])
    def test_import_gets_new_id(self, tmp_path, filename):
        original = sample_pack()
        path = export_pack(original, tmp_path / filename)

        imported = import_pack(path)

        assert imported.id != original.id
        assert imported.id.startswith("pack_")
        assert imported.name == original.name
        assert imported.memos == original.memos

    def test_import_rules_document(self, tmp_path):
        path = tmp_path / "memo-rules.json"
        path.write_text(json.dumps({
            "systemPrompt": "Be kind.",
            "rules": [{"title": "Goals", "updateRule": "Track goals"}],
        }))

        pack = import_pack(path)

        assert pack.name == "memo rules"
        assert pack.system_prompt == "Be kind."
        assert pack.rules == [MemoRule("Goals", "Track goals")]
        assert pack.memos == []
        assert pack.tags == ["imported"]

    @pytest.mark.parametrize("content", ["[1, 2]", '{"hello": "world"}', "{broken"])
    def test_import_unrecognized(self, tmp_path, content):
        path = tmp_path / "other.json"
        path.write_text(content)
        with pytest.raises(PackFormatError):
            import_pack(path)
