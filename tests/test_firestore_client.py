"""
Unit Tests for the Firestore client factory.

firebase_admin is patched throughout; no app is ever initialized.
"""

from unittest.mock import MagicMock, patch

import pytest

from firestore_datasync.backends import (
    FirestoreClientWrapper,
    clear_firestore_cache,
    get_firestore_client,
    resolve_settings,
)
from firestore_datasync.settings import FirestoreSettings

MODULE = "firestore_datasync.backends.firestore_client"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    # The wrapper exports FIRESTORE_EMULATOR_HOST; register it so monkeypatch restores it
    monkeypatch.setenv("FIRESTORE_EMULATOR_HOST", "")
    monkeypatch.delenv("FIRESTORE_EMULATOR_HOST")
    monkeypatch.delenv("FIREBASE_PROJECT_ID", raising=False)
    monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)
    clear_firestore_cache()
    yield
    clear_firestore_cache()


@pytest.fixture
def firebase():
    with patch(f"{MODULE}.firebase_admin") as admin, patch(f"{MODULE}.firestore") as firestore, patch(
        f"{MODULE}.credentials"
    ) as credentials:
        yield MagicMock(admin=admin, firestore=firestore, credentials=credentials)


class TestResolveSettings:
    def test_environment_fills_unset_fields(self, monkeypatch):
        monkeypatch.setenv("FIREBASE_PROJECT_ID", "env-project")
        monkeypatch.setenv("FIRESTORE_EMULATOR_HOST", "localhost:8080")

        settings = resolve_settings(FirestoreSettings(project="explicit"))

        assert settings.project == "explicit"
        assert settings.emulator_host == "localhost:8080"
        assert settings.credentials_path is None

    def test_defaults_without_environment(self):
        assert resolve_settings() == FirestoreSettings()


class TestFirestoreClientWrapper:
    def test_connects_on_first_use(self, firebase):
        wrapper = FirestoreClientWrapper(FirestoreSettings(project="demo", emulator_host="localhost:8080"))

        firebase.admin.initialize_app.assert_not_called()
        client = wrapper.client

        assert client is firebase.firestore.client.return_value
        assert wrapper.client is client
        firebase.admin.initialize_app.assert_called_once()
        assert wrapper.is_emulator

    def test_emulator_needs_no_credentials(self, firebase):
        wrapper = FirestoreClientWrapper(FirestoreSettings(project="demo", emulator_host="localhost:8080"))

        wrapper.collection("users")

        kwargs = firebase.admin.initialize_app.call_args.kwargs
        assert kwargs["credential"] is None
        assert kwargs["options"] == {"projectId": "demo"}
        assert kwargs["name"] == wrapper.app_name
        firebase.credentials.ApplicationDefault.assert_not_called()
        firebase.firestore.client.return_value.collection.assert_called_once_with("users")

    def test_application_default_credentials(self, firebase):
        FirestoreClientWrapper(FirestoreSettings(project="demo")).client

        firebase.credentials.ApplicationDefault.assert_called_once()

    def test_service_account_file(self, firebase, tmp_path):
        key = tmp_path / "key.json"
        key.write_text("{}")

        FirestoreClientWrapper(FirestoreSettings(credentials_path=str(key))).client

        firebase.credentials.Certificate.assert_called_once_with(str(key))
        assert firebase.admin.initialize_app.call_args.kwargs["options"] is None

    def test_close(self, firebase):
        wrapper = FirestoreClientWrapper(FirestoreSettings(emulator_host="localhost:8080"))
        wrapper.client
        wrapper.close()
        wrapper.close()

        firebase.admin.delete_app.assert_called_once()

    def test_repr(self):
        wrapper = FirestoreClientWrapper(FirestoreSettings(project="demo"))
        assert repr(wrapper) == "FirestoreClientWrapper(project='demo', emulator_host=None)"


class TestClientCache:
    def test_equal_settings_share_client(self):
        a = get_firestore_client(FirestoreSettings(project="demo", emulator_host="localhost:8080"))
        b = get_firestore_client(FirestoreSettings(project="demo", emulator_host="localhost:8080"))
        c = get_firestore_client(FirestoreSettings(project="other", emulator_host="localhost:8080"))

        assert a is b
        assert a is not c

    def test_environment_applied_before_lookup(self, monkeypatch):
        monkeypatch.setenv("FIREBASE_PROJECT_ID", "demo")

        assert get_firestore_client() is get_firestore_client(FirestoreSettings(project="demo"))

    def test_clear_cache(self):
        get_firestore_client(FirestoreSettings(project="demo"))
        get_firestore_client(FirestoreSettings(project="other"))

        assert clear_firestore_cache() == 2
        assert clear_firestore_cache() == 0
