"""Unit tests for request secret validation."""

import hashlib
import hmac

from utils import check_secret, verify_signature

BODY = b'{"ref": "main"}'


def sign(secret, body=BODY):
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def test_valid_signature():
    assert verify_signature("key", BODY, f"sha256={sign('key')}")


def test_signature_for_other_body():
    assert not verify_signature("key", b"{}", f"sha256={sign('key')}")


def test_missing_signature():
    assert not verify_signature("key", BODY, None)


def test_malformed_signature():
    assert not verify_signature("key", BODY, sign("key"))


def test_unsupported_digest():
    assert not verify_signature("key", BODY, f"sha1={sign('key')}")


def test_check_secret_without_credentials():
    assert check_secret("key", BODY, {}) is None


def test_check_secret_gitlab_token():
    assert check_secret("key", BODY, {"X-Gitlab-Token": "key"}) is True
    assert check_secret("key", BODY, {"X-Gitlab-Token": "other"}) is False


def test_check_secret_github():
    assert check_secret("key", BODY, {"X-Hub-Signature-256": f"sha256={sign('key')}"}) is True


def test_check_secret_gitea_uppercase_digest():
    assert check_secret("key", BODY, {"X-Gitea-Signature": sign("key").upper()}) is True
