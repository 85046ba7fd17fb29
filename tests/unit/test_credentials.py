"""Tests for bananastudio.core.credentials — API key persistence and resolution."""

from __future__ import annotations

import json

import pytest

from bananastudio.core.credentials import CredentialStore, resolve_credential
from bananastudio.core.errors import LocalIOError, MissingCredentialError, ValidationError


@pytest.fixture
def key_path(temp_dir):
    return temp_dir / "data" / "api_key.json"


@pytest.fixture
def store(key_path) -> CredentialStore:
    return CredentialStore(key_path)


class TestCredentialStore:
    """Test CredentialStore load/save/clear."""

    def test_missing_file_is_none(self, store):
        assert store.load() is None
        assert store.is_configured is False

    def test_save_then_load(self, store, key_path):
        store.save("  AIza-test  ")
        assert store.load() == "AIza-test"
        assert json.loads(key_path.read_text()) == {"apiKey": "AIza-test"}

    def test_save_overwrites_whole_file(self, store, key_path):
        store.save("first")
        store.save("second")
        assert json.loads(key_path.read_text()) == {"apiKey": "second"}
        assert CredentialStore(key_path).load() == "second"

    def test_no_temp_files_left_behind(self, store, key_path):
        store.save("key")
        assert [p.name for p in key_path.parent.iterdir()] == ["api_key.json"]

    def test_existing_file_loaded_lazily(self, key_path):
        key_path.parent.mkdir(parents=True)
        store = CredentialStore(key_path)
        key_path.write_text(json.dumps({"apiKey": "from-disk"}))
        assert store.load() == "from-disk"

    def test_load_is_cached(self, store, key_path):
        store.save("cached")
        key_path.write_text(json.dumps({"apiKey": "changed-behind-our-back"}))
        assert store.load() == "cached"

    @pytest.mark.parametrize(
        "content",
        ["{not json", json.dumps(["list"]), json.dumps({"apiKey": ""}), json.dumps({"other": 1})],
    )
    def test_corrupt_file_is_deleted(self, key_path, content):
        key_path.parent.mkdir(parents=True)
        key_path.write_text(content)

        assert CredentialStore(key_path).load() is None
        assert not key_path.exists()

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_key_rejected(self, store, key_path, value):
        with pytest.raises(ValidationError):
            store.save(value)
        assert not key_path.exists()

    def test_clear(self, store, key_path):
        store.save("key")
        store.clear()
        assert store.load() is None
        assert not key_path.exists()

    def test_unwritable_location_raises_local_io_error(self, temp_dir):
        blocker = temp_dir / "blocker"
        blocker.write_text("a file, not a directory")
        store = CredentialStore(blocker / "api_key.json")
        with pytest.raises(LocalIOError):
            store.save("key")


class TestResolveCredential:
    """Test resolve_credential() for each credential source."""

    def test_request_source_uses_request_key(self, store):
        store.save("stored")
        assert resolve_credential("from-request", store, "request") == "from-request"

    def test_request_source_ignores_store(self, store):
        store.save("stored")
        with pytest.raises(MissingCredentialError):
            resolve_credential(None, store, "request")

    def test_store_source_ignores_request_key(self, store):
        store.save("stored")
        assert resolve_credential("from-request", store, "store") == "stored"

    def test_store_source_without_key(self, store):
        with pytest.raises(MissingCredentialError):
            resolve_credential("from-request", store, "store")

    def test_either_prefers_request(self, store):
        store.save("stored")
        assert resolve_credential("from-request", store, "either") == "from-request"

    def test_either_falls_back_to_store(self, store):
        store.save("stored")
        assert resolve_credential("   ", store, "either") == "stored"

    def test_missing_credential_has_hint(self, store):
        with pytest.raises(MissingCredentialError) as exc_info:
            resolve_credential("", store, "either")
        payload = exc_info.value.to_payload()
        assert exc_info.value.status_code == 400
        assert "API key" in payload["error"]
        assert "aistudio.google.com/apikey" in payload["hint"]
