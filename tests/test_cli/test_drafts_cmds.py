"""Tests for `editsync drafts list|show|discard`."""

from __future__ import annotations

from editsync.core.models import DraftRecord


def _seed(store) -> None:
    store.save(DraftRecord("doc1", "title", "Offline title", version=3, attempt=2))
    store.save(DraftRecord("doc1", "body", {"text": "hi"}, version=1))
    store.save(DraftRecord("doc2", "title", "Other", version=7))


class TestDraftsList:
    def test_empty(self, invoke, project_drafts) -> None:
        result = invoke("drafts", "list")
        assert result.exit_code == 0
        assert result.output.strip() == "No drafts."

    def test_all_entities_json(self, invoke_json, project_drafts) -> None:
        _seed(project_drafts)
        parsed, code = invoke_json("drafts", "list")
        assert code == 0
        assert [(d["entity_id"], d["field_id"]) for d in parsed["data"]] == [
            ("doc1", "body"),
            ("doc1", "title"),
            ("doc2", "title"),
        ]

    def test_single_entity(self, invoke_json, project_drafts) -> None:
        _seed(project_drafts)
        parsed, _ = invoke_json("drafts", "list", "doc2")
        assert [d["value"] for d in parsed["data"]] == ["Other"]

    def test_human_lines(self, invoke, project_drafts) -> None:
        _seed(project_drafts)
        result = invoke("drafts", "list", "doc1")
        lines = result.output.strip().splitlines()
        assert len(lines) == 2
        assert lines[1].startswith("doc1  title  v3  attempt=2")
        assert lines[1].endswith('"Offline title"')

    def test_entity_with_colon(self, invoke_json, project_drafts) -> None:
        project_drafts.save(DraftRecord("matter:42", "title", "Colon"))
        parsed, code = invoke_json("drafts", "list", "matter:42")
        assert code == 0
        assert [d["value"] for d in parsed["data"]] == ["Colon"]

    def test_all_entities_include_encoded_ids(self, invoke_json, project_drafts) -> None:
        project_drafts.save(DraftRecord("matter:42", "title", "Colon"))
        parsed, _ = invoke_json("drafts", "list")
        assert [d["entity_id"] for d in parsed["data"]] == ["matter:42"]

    def test_invalid_entity(self, invoke_json, project_drafts) -> None:
        parsed, code = invoke_json("drafts", "list", "")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_ID"


class TestDraftsShow:
    def test_show_json(self, invoke_json, project_drafts) -> None:
        _seed(project_drafts)
        parsed, code = invoke_json("drafts", "show", "doc1", "body")
        assert code == 0
        assert parsed["data"]["value"] == {"text": "hi"}
        assert parsed["data"]["version"] == 1

    def test_show_human(self, invoke, project_drafts) -> None:
        _seed(project_drafts)
        result = invoke("drafts", "show", "doc1", "title")
        assert "Version:  3" in result.output
        assert 'Value:    "Offline title"' in result.output

    def test_missing(self, invoke_json, project_drafts) -> None:
        parsed, code = invoke_json("drafts", "show", "doc1", "nope")
        assert code == 1
        assert parsed["error"]["code"] == "NOT_FOUND"


class TestDraftsDiscard:
    def test_discard(self, invoke_json, project_drafts) -> None:
        _seed(project_drafts)
        parsed, code = invoke_json("drafts", "discard", "doc1", "title")
        assert code == 0
        assert parsed["data"]["discarded"] is True
        assert project_drafts.load("doc1", "title") is None
        assert [d.field_id for d in project_drafts.load_all("doc1")] == ["body"]

    def test_discard_missing(self, invoke_json, project_drafts) -> None:
        parsed, code = invoke_json("drafts", "discard", "doc1", "title")
        assert code == 1
        assert parsed["error"]["code"] == "NOT_FOUND"

    def test_discard_human(self, invoke, project_drafts) -> None:
        _seed(project_drafts)
        result = invoke("drafts", "discard", "doc2", "title")
        assert result.exit_code == 0
        assert result.output.strip() == "Discarded draft doc2/title"
