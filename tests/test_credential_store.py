"""Credential store — per-audience isolation and durability."""

import json
import os

import pytest

from continuum.auth.store import CredentialStore, FileBackend, MemoryBackend
from continuum.auth.tokens import CredentialPair
from continuum.client.descriptor import Audience

CUSTOMER = CredentialPair(access_token="c-access", refresh_token="c-refresh")
ADMIN = CredentialPair(access_token="a-access", refresh_token="a-refresh")


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return CredentialStore(MemoryBackend())
    return CredentialStore(FileBackend(tmp_path / "creds" / "credentials.json"))


def test_empty_store_returns_none(any_store):
    assert any_store.get(Audience.CUSTOMER) is None
    assert any_store.get(Audience.ADMIN) is None


def test_set_then_get(any_store):
    any_store.set(Audience.CUSTOMER, CUSTOMER)
    assert any_store.get(Audience.CUSTOMER) == CUSTOMER


def test_audiences_are_isolated(any_store):
    any_store.set(Audience.CUSTOMER, CUSTOMER)
    any_store.set(Audience.ADMIN, ADMIN)

    any_store.clear(Audience.ADMIN)

    assert any_store.get(Audience.CUSTOMER) == CUSTOMER
    assert any_store.get(Audience.ADMIN) is None


def test_clear_is_idempotent(any_store):
    any_store.set(Audience.CUSTOMER, CUSTOMER)
    any_store.clear(Audience.CUSTOMER)
    any_store.clear(Audience.CUSTOMER)
    assert any_store.get(Audience.CUSTOMER) is None


def test_clear_drops_cached_profile(any_store):
    any_store.set(Audience.CUSTOMER, CUSTOMER)
    any_store.cache_user(Audience.CUSTOMER, {"email": "ada@example.com"}, "client")

    any_store.clear(Audience.CUSTOMER)

    assert any_store.cached_user(Audience.CUSTOMER) is None
    assert any_store.user_type(Audience.CUSTOMER) is None


def test_cache_user_keeps_credentials(any_store):
    any_store.set(Audience.ADMIN, ADMIN)
    any_store.cache_user(Audience.ADMIN, {"email": "root@example.com"}, "admin")

    assert any_store.get(Audience.ADMIN) == ADMIN
    assert any_store.cached_user(Audience.ADMIN) == {"email": "root@example.com"}
    assert any_store.user_type(Audience.ADMIN) == "admin"


def test_scoped_view_only_sees_its_audience(any_store):
    customer = any_store.scoped(Audience.CUSTOMER)
    admin = any_store.scoped(Audience.ADMIN)

    customer.set(CUSTOMER)

    assert customer.get() == CUSTOMER
    assert admin.get() is None
    admin.clear()
    assert customer.get() == CUSTOMER


# ─── File backend ────────────────────────────────────────


def test_file_store_survives_restart(tmp_path):
    path = tmp_path / "credentials.json"
    CredentialStore(FileBackend(path)).set(Audience.CUSTOMER, CUSTOMER)

    reopened = CredentialStore(FileBackend(path))

    assert reopened.get(Audience.CUSTOMER) == CUSTOMER


def test_file_is_keyed_by_audience(tmp_path):
    path = tmp_path / "credentials.json"
    store = CredentialStore(FileBackend(path))
    store.set(Audience.CUSTOMER, CUSTOMER)
    store.set(Audience.ADMIN, ADMIN)

    data = json.loads(path.read_text())

    assert data["customer"]["credentials"]["access_token"] == "c-access"
    assert data["admin"]["credentials"]["access_token"] == "a-access"


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_file_is_private(tmp_path):
    path = tmp_path / "credentials.json"
    CredentialStore(FileBackend(path)).set(Audience.CUSTOMER, CUSTOMER)
    assert path.stat().st_mode & 0o777 == 0o600


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        '["customer"]',
        '{"customer": "garbage"}',
        '{"customer": {"credentials": "garbage"}}',
        '{"customer": {"credentials": {"access_token": 123}}}',
        '{"customer": {"credentials": {"access_token": ""}}}',
        '{"customer": {"credentials": {"refresh_token": "r"}}}',
    ],
)
def test_corrupt_file_reads_as_absent(tmp_path, content):
    path = tmp_path / "credentials.json"
    path.write_text(content)

    store = CredentialStore(FileBackend(path))

    assert store.get(Audience.CUSTOMER) is None
    store.set(Audience.CUSTOMER, CUSTOMER)
    assert store.get(Audience.CUSTOMER) == CUSTOMER


def test_unwritable_location_reads_as_absent(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    store = CredentialStore(FileBackend(blocker / "credentials.json"))

    store.set(Audience.CUSTOMER, CUSTOMER)

    assert store.get(Audience.CUSTOMER) is None


def test_no_temp_files_left_behind(tmp_path):
    store = CredentialStore(FileBackend(tmp_path / "credentials.json"))
    store.set(Audience.CUSTOMER, CUSTOMER)
    store.set(Audience.ADMIN, ADMIN)
    store.clear(Audience.CUSTOMER)

    assert [p.name for p in tmp_path.iterdir()] == ["credentials.json"]
