# models/event.py

import json
from typing import Any, Mapping, Optional, Tuple

# Header names are matched case-insensitively by Starlette's Headers.
EVENT_TYPE_HEADERS = ("X-Gitlab-Event", "X-GitHub-Event", "X-Gitea-Event")


class Event(dict):
    """
    Decoded webhook payload.

    Behaves as a plain mapping so templates can address any field, with a few
    helpers for the fields the dispatcher filters on.
    """

    @classmethod
    def from_payload(cls, body: bytes, headers: Optional[Mapping[str, str]] = None) -> "Event":
        """
        Decode a JSON payload and normalize host-specific fields.

        Raises:
            ValueError: the body is not a JSON object.
        """
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        return cls.from_data(data, headers)

    @classmethod
    def from_data(cls, data: dict, headers: Optional[Mapping[str, str]] = None) -> "Event":
        event = cls(data)
        headers = headers or {}

        if not isinstance(event.get("type"), str):
            for name in EVENT_TYPE_HEADERS:
                value = headers.get(name)
                if value:
                    event["type"] = value
                    break

        # GitLab pipeline events keep status and ref under object_attributes
        attributes = event.get("object_attributes")
        if isinstance(attributes, dict):
            if "status" not in event and "status" in attributes:
                event["status"] = attributes["status"]
            if "ref" not in event and "ref" in attributes:
                event["ref"] = attributes["ref"]

        return event

    def expect_str(self, key: str) -> Tuple[Any, bool]:
        """Return (value, True) if `key` holds a string, else (raw value, False)."""
        value = self.get(key)
        return value, isinstance(value, str)

    def commits(self) -> list:
        # GitHub, GitLab and Gitea push events
        commits = self.get("commits")
        if isinstance(commits, list):
            return commits

        # Bitbucket push events
        push = self.get("push")
        if isinstance(push, dict) and isinstance(push.get("changes"), list):
            result = []
            for change in push["changes"]:
                if isinstance(change, dict) and isinstance(change.get("commits"), list):
                    result.extend(change["commits"])
            return result

        return []
