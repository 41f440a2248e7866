#!/usr/bin/env python3
"""
Session persistence tests
"""

import json

import pytest

from firechat.models import AuthUser
from firechat.session_manager import SessionManager


@pytest.fixture
def manager(tmp_path):
    return SessionManager(tmp_path / "nested" / "session.json")


@pytest.fixture
def user():
    return AuthUser(uid="u-1", display_name="alice", email="alice@example.com",
                    id_token="id-1", refresh_token="refresh-1")


def test_save_and_load(manager, user):
    assert manager.save_session(user) is True

    assert manager.session_exists()
    assert manager.load_session() == user


def test_saved_file_uses_wire_names(manager, user):
    manager.save_session(user)

    data = json.loads(manager.session_file.read_text())
    assert data["localId"] == "u-1"
    assert data["idToken"] == "id-1"


def test_load_without_file(manager):
    assert manager.load_session() is None


def test_corrupt_file_is_ignored(manager):
    manager.session_file.parent.mkdir(parents=True)
    manager.session_file.write_text("{not json")

    assert manager.load_session() is None


def test_missing_tokens_clear_session(manager):
    manager.session_file.parent.mkdir(parents=True)
    manager.session_file.write_text(json.dumps({"localId": "u-1", "idToken": "id"}))

    assert manager.load_session() is None
    assert not manager.session_exists()


def test_update_tokens(manager, user):
    manager.save_session(user)

    assert manager.update_tokens(id_token="id-2") is True

    loaded = manager.load_session()
    assert loaded.id_token == "id-2"
    assert loaded.refresh_token == "refresh-1"


def test_update_tokens_without_session(manager):
    assert manager.update_tokens(id_token="id-2") is False


def test_clear_session(manager, user):
    manager.save_session(user)

    assert manager.clear_session() is True
    assert not manager.session_exists()
    assert manager.clear_session() is True
