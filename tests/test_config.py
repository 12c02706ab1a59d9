import pytest

from votingapi.__main__ import parse_args
from votingapi.config import Settings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("HOST", "PORT", "CACHE_URL", "VOTER_API_URL", "POLL_API_URL", "VOTES_API_URL", "HTTP_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


def test_default_ports() -> None:
    assert Settings(service="voter").port == 1080
    assert Settings(service="poll").port == 2080
    assert Settings(service="votes").port == 3080


def test_unknown_service() -> None:
    with pytest.raises(ValueError):
        Settings(service="ballots")


def test_flags_are_used_without_env() -> None:
    settings = load_settings("votes", port=4000, cache_url="cache:6379", voter_api_url="http://v:1")

    assert settings.port == 4000
    assert settings.cache_url == "cache:6379"
    assert settings.voter_api_url == "http://v:1"
    assert settings.poll_api_url == "http://localhost:2080"


def test_env_overrides_flags(monkeypatch) -> None:
    monkeypatch.setenv("PORT", "5000")
    monkeypatch.setenv("POLL_API_URL", "http://polls:2080")
    monkeypatch.setenv("HTTP_TIMEOUT", "3")

    settings = load_settings("votes", port=4000, poll_api_url="http://elsewhere")

    assert settings.port == 5000
    assert settings.poll_api_url == "http://polls:2080"
    assert settings.http_timeout == 3.0


def test_bad_port_env_falls_back(monkeypatch) -> None:
    monkeypatch.setenv("PORT", "eighty")

    assert load_settings("poll", port=2999).port == 2999


def test_cli_arguments() -> None:
    args = parse_args(["voter", "-p", "1081", "--votes-api", "http://votes:3080"])

    assert args.service == "voter"
    assert args.port == 1081
    assert args.votes_api_url == "http://votes:3080"
    assert args.cache_url is None
