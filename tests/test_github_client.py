from unittest.mock import MagicMock

import pytest
import requests

from app.core.exceptions import UpstreamError
from app.external.github_client import GitHubClient


def response(status_code, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return GitHubClient(base_url="https://github.example/api/", timeout=3, session=session)


def test_get_repository_converts_payload(client, session):
    session.get.return_value = response(200, {
        "id": 42, "name": "shop", "full_name": "octo/shop", "owner": {"login": "octo"},
        "private": True, "clone_url": "https://github.com/octo/shop.git", "default_branch": "main",
        "stargazers_count": 7,
    })

    repo = client.get_repository("tok", "octo", "shop")

    assert repo["owner"] == "octo"
    assert repo["stars"] == 7
    assert repo["private"] is True
    url = session.get.call_args.args[0]
    assert url == "https://github.example/api/repos/octo/shop"
    assert session.get.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"
    assert session.get.call_args.kwargs["timeout"] == 3


def test_provider_message_is_surfaced(client, session):
    session.get.return_value = response(404, {"message": "Not Found"})
    with pytest.raises(UpstreamError, match="failed to get repository: Not Found"):
        client.get_repository("tok", "octo", "missing")


def test_transport_error_is_wrapped(client, session):
    session.get.side_effect = requests.ConnectionError("connection refused")
    with pytest.raises(UpstreamError, match="connection refused"):
        client.get_branches("tok", "octo", "shop")


def test_list_repositories_sorted_by_update(client, session):
    session.get.return_value = response(200, [{"name": "a", "owner": {"login": "octo"}}])

    repos = client.list_repositories("tok", page=2, per_page=10)

    assert [r["name"] for r in repos] == ["a"]
    assert session.get.call_args.kwargs["params"] == {
        "page": 2, "per_page": 10, "sort": "updated", "direction": "desc",
    }


def test_branches_and_default_branch(client, session):
    session.get.return_value = response(200, [{"name": "main", "protected": True, "commit": {"sha": "abc"}}])
    assert client.get_branches("tok", "octo", "shop") == [
        {"name": "main", "protected": True, "commit_sha": "abc"},
    ]

    session.get.return_value = response(200, {"default_branch": "develop"})
    assert client.get_default_branch("tok", "octo", "shop") == "develop"


def test_find_dockerfile_tries_candidates_in_order(client, session):
    session.get.side_effect = [response(404), response(404), response(200)]

    assert client.find_dockerfile("tok", "octo", "shop", "main") == ".docker/Dockerfile"
    paths = [call.args[0].rsplit("/contents/", 1)[1] for call in session.get.call_args_list]
    assert paths == ["Dockerfile", "dockerfile", ".docker/Dockerfile"]
    assert session.get.call_args.kwargs["params"] == {"ref": "main"}


def test_find_dockerfile_absent(client, session):
    session.get.return_value = response(404)
    assert client.find_dockerfile("tok", "octo", "shop", "main") is None


def test_find_dockerfile_provider_error_is_not_absence(client, session):
    session.get.return_value = response(403, {"message": "API rate limit exceeded"})
    with pytest.raises(UpstreamError, match="rate limit"):
        client.find_dockerfile("tok", "octo", "shop", "main")


def test_get_branch_returns_head_commit(client, session):
    session.get.return_value = response(200, {"name": "main", "protected": False, "commit": {"sha": "f00d"}})

    branch = client.get_branch("tok", "octo", "shop", "main")

    assert branch == {"name": "main", "protected": False, "commit_sha": "f00d"}
    assert session.get.call_args.args[0] == "https://github.example/api/repos/octo/shop/branches/main"


def test_search_repositories_reads_items(client, session):
    session.get.return_value = response(200, {"total_count": 1, "items": [
        {"name": "shop", "full_name": "octo/shop", "owner": {"login": "octo"}},
    ]})

    repos = client.search_repositories("tok", "shop language:python", page=1, per_page=5)

    assert [r["full_name"] for r in repos] == ["octo/shop"]
    assert session.get.call_args.args[0] == "https://github.example/api/search/repositories"
    assert session.get.call_args.kwargs["params"] == {"q": "shop language:python", "page": 1, "per_page": 5}


def test_get_authenticated_user(client, session):
    session.get.return_value = response(200, {
        "login": "octocat", "id": 9, "avatar_url": "https://avatars/9", "name": "Octo Cat",
    })

    user = client.get_authenticated_user("tok")

    assert user["login"] == "octocat"
    assert user["id"] == 9
    assert user["email"] is None
    assert session.get.call_args.args[0] == "https://github.example/api/user"
