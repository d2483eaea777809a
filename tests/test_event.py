"""Unit tests for event decoding and normalization."""

import json

import pytest

from models.event import Event


def test_from_payload_decodes_object():
    event = Event.from_payload(b'{"ref": "refs/heads/main", "n": 1}')
    assert event["ref"] == "refs/heads/main"
    assert event["n"] == 1


def test_from_payload_rejects_non_object():
    with pytest.raises(ValueError):
        Event.from_payload(b"[1, 2]")


def test_from_payload_rejects_invalid_json():
    with pytest.raises(ValueError):
        Event.from_payload(b"{not json")


def test_type_from_gitlab_header():
    event = Event.from_data({}, {"X-Gitlab-Event": "Push Hook"})
    assert event["type"] == "Push Hook"


def test_type_from_github_header():
    event = Event.from_data({}, {"X-GitHub-Event": "push"})
    assert event["type"] == "push"


def test_payload_type_wins_over_header():
    event = Event.from_data({"type": "custom"}, {"X-GitHub-Event": "push"})
    assert event["type"] == "custom"


def test_gitlab_pipeline_fields_are_lifted():
    payload = {
        "object_kind": "pipeline",
        "object_attributes": {"status": "success", "ref": "main"},
    }
    event = Event.from_data(payload)
    assert event["status"] == "success"
    assert event["ref"] == "main"


def test_top_level_fields_are_not_overwritten():
    payload = {"ref": "refs/heads/dev", "object_attributes": {"ref": "main"}}
    assert Event.from_data(payload)["ref"] == "refs/heads/dev"


def test_expect_str():
    event = Event({"ref": "main", "status": 3})
    assert event.expect_str("ref") == ("main", True)
    assert event.expect_str("status") == (3, False)
    assert event.expect_str("type") == (None, False)


def test_commits_github_shape():
    event = Event({"commits": [{"id": "a"}, {"id": "b"}]})
    assert [c["id"] for c in event.commits()] == ["a", "b"]


def test_commits_bitbucket_shape():
    payload = {
        "push": {
            "changes": [
                {"commits": [{"hash": "a"}]},
                {"commits": [{"hash": "b"}, {"hash": "c"}]},
            ]
        }
    }
    assert [c["hash"] for c in Event(payload).commits()] == ["a", "b", "c"]


def test_commits_absent():
    assert Event({"ref": "main"}).commits() == []


def test_event_is_json_serializable():
    event = Event.from_data({"ref": "main"}, {"X-GitHub-Event": "push"})
    assert json.loads(json.dumps(event)) == {"ref": "main", "type": "push"}
