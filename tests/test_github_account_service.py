import pytest

from app.core.exceptions import ValidationError
from app.models.github_token import GitHubToken


def test_save_token_replaces_previous_one(github_account_service, db_session):
    github_account_service.save_token("user-1", "first")
    github_account_service.save_token("user-1", "second")

    tokens = db_session.query(GitHubToken).filter(GitHubToken.user_id == "user-1").all()
    assert [t.token for t in tokens] == ["second"]


def test_save_empty_token_is_rejected(github_account_service):
    with pytest.raises(ValidationError):
        github_account_service.save_token("user-1", "")


def test_request_token_wins_over_stored_token(github_account_service):
    github_account_service.save_token("user-1", "stored")

    assert github_account_service.resolve_token("user-1", "from-header") == "from-header"
    assert github_account_service.resolve_token("user-1") == "stored"


def test_missing_token(github_account_service):
    assert github_account_service.find_token("nobody") == ""
    with pytest.raises(ValidationError, match="GitHub token is required"):
        github_account_service.resolve_token("nobody")


def test_search_requires_query(github_account_service, github_client):
    with pytest.raises(ValidationError, match="'q' is required"):
        github_account_service.search_repositories("user-1", "", request_token="tok")
    assert github_client.calls == []


def test_search_uses_stored_token(github_account_service, github_client):
    github_account_service.save_token("user-1", "stored")

    repos = github_account_service.search_repositories("user-1", "shop", page=2, per_page=5)

    assert repos[0]["full_name"] == "octo/shop"
    assert github_client.calls[0] == ("search_repositories", "stored", "shop", 2, 5)
