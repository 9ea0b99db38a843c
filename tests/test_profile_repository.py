from types import SimpleNamespace

import pytest

from chirp.backend import BackendManager
from chirp.errors import ProfileConflictError
from chirp.models.profile import Profile
from chirp.repositories.profile_repository import ProfileRepository, ProfileStore


class FakeAPIError(Exception):
    """Shaped like postgrest's APIError: a message plus a SQLSTATE code."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class FakeQuery:
    """Records a fluent PostgREST chain and answers ``execute()`` from a script."""

    def __init__(self, table, result=None, error=None):
        self.table = table
        self.calls = []
        self._result = result
        self._error = error

    def __getattr__(self, name):
        def step(*args, **kwargs):
            self.calls.append((name, args))
            return self
        return step

    def execute(self):
        if self._error is not None:
            raise self._error
        return self._result


class FakeClient:
    def __init__(self, result=None, error=None):
        self.queries = []
        self._result = result
        self._error = error

    def table(self, name):
        query = FakeQuery(name, self._result, self._error)
        self.queries.append(query)
        return query


def make_repo(logger, client, table=None):
    backend = BackendManager(
        supabase_url="https://demo.supabase.co",
        supabase_key="anon-key",
        logger=logger,
        client=client,
    )
    return ProfileRepository(backend=backend, logger=logger, table=table)


ROW = {
    "id": "u-1",
    "username": "Jane",
    "display_name": "Jane Doe",
    "bio": None,
    "avatar_url": None,
    "created_at": "2024-01-01T00:00:00+00:00",
    "updated_at": "2024-01-01T00:00:00+00:00",
    "follower_count": 12,
}


def test_repository_satisfies_store_protocol(logger):
    assert isinstance(make_repo(logger, FakeClient()), ProfileStore)


def test_get_profile_by_id(logger):
    client = FakeClient(result=SimpleNamespace(data=ROW))
    repo = make_repo(logger, client)

    profile = repo.get_profile("u-1")

    assert profile.id == "u-1"
    assert profile.username == "jane"
    query = client.queries[0]
    assert query.table == "user_profiles"
    assert ("eq", ("id", "u-1")) in query.calls
    assert ("maybe_single", ()) in query.calls


@pytest.mark.parametrize("result", [None, SimpleNamespace(data=None)])
def test_get_profile_absent(logger, result):
    assert make_repo(logger, FakeClient(result=result)).get_profile("u-1") is None


def test_configured_table_name(logger):
    client = FakeClient(result=None)

    make_repo(logger, client, table="profiles_v2").get_profile("u-1")

    assert client.queries[0].table == "profiles_v2"


def test_insert_returns_stored_row(logger):
    client = FakeClient(result=SimpleNamespace(data=[ROW]))
    profile = Profile(id="u-1", username="jane", display_name="Jane Doe")

    stored = make_repo(logger, client).insert_profile(profile)

    assert stored.display_name == "Jane Doe"
    name, (payload,) = client.queries[0].calls[0]
    assert name == "insert"
    assert payload["id"] == "u-1"
    assert payload["created_at"] is None


def test_insert_without_representation_returns_input(logger):
    profile = Profile(id="u-1", username="jane", display_name="Jane Doe")

    stored = make_repo(logger, FakeClient(result=SimpleNamespace(data=[]))).insert_profile(profile)

    assert stored == profile


def test_unique_violation_becomes_conflict(logger):
    error = FakeAPIError("duplicate key value violates unique constraint", code="23505")
    profile = Profile(id="u-1", username="jane", display_name="Jane Doe")

    with pytest.raises(ProfileConflictError) as exc_info:
        make_repo(logger, FakeClient(error=error)).insert_profile(profile)

    assert exc_info.value.original_error is error


def test_other_insert_errors_propagate(logger):
    error = FakeAPIError("permission denied for table user_profiles", code="42501")
    profile = Profile(id="u-1", username="jane", display_name="Jane Doe")

    with pytest.raises(FakeAPIError):
        make_repo(logger, FakeClient(error=error)).insert_profile(profile)


def test_probe_runs_one_row_query(logger):
    client = FakeClient(result=SimpleNamespace(data=[]))

    assert make_repo(logger, client).probe() is True
    assert ("limit", (1,)) in client.queries[0].calls
