"""Tests for the Riot account verification client."""

from unittest.mock import Mock

import pytest
import requests

from account_verifier.riot_api import RiotAccountClient, regional_url
from bracket_core.validation import ValidationError


def make_response(status_code=200, payload=None, json_error=None):
    response = Mock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return RiotAccountClient("riot-key", session=session, timeout=3.0)


class TestRegionalUrl:
    def test_routing(self):
        assert regional_url("EUW1") == "https://europe.api.riotgames.com"
        assert regional_url("kr") == "https://asia.api.riotgames.com"
        assert regional_url("NA1") == "https://americas.api.riotgames.com"

    def test_unrouted_region_defaults_to_americas(self):
        assert regional_url("OCE1") == "https://americas.api.riotgames.com"


class TestVerifyAccount:
    def test_found(self, client, session):
        session.get.return_value = make_response(
            payload={"puuid": "abc-123", "gameName": "Faker", "tagLine": "KR1"}
        )

        result = client.verify_account("Faker", "KR1", "KR")

        assert result.status == "ok"
        assert result.account.account_id == "abc-123"
        assert result.account.display_name == "Faker#KR1"
        session.get.assert_called_once_with(
            "https://asia.api.riotgames.com/riot/account/v1/accounts/by-riot-id/Faker/KR1",
            headers={"X-Riot-Token": "riot-key"},
            timeout=3.0,
        )

    def test_names_are_url_quoted(self, client, session):
        session.get.return_value = make_response(payload={"puuid": "p"})

        client.verify_account(" Some Name ", "E/W", "euw1")

        url = session.get.call_args.args[0]
        assert url.endswith("/by-riot-id/Some%20Name/E%2FW")
        assert url.startswith("https://europe.api.riotgames.com")

    @pytest.mark.parametrize(
        "status_code,expected",
        [(404, "not_found"), (429, "rate_limited"), (500, "error"), (403, "error")],
    )
    def test_http_statuses(self, client, session, status_code, expected):
        session.get.return_value = make_response(status_code=status_code)

        result = client.verify_account("Player", "EUW", "EUW1")

        assert result.status == expected
        assert result.account is None

    def test_network_failure(self, client, session):
        session.get.side_effect = requests.ConnectionError("down")

        result = client.verify_account("Player", "EUW", "EUW1")

        assert result.status == "error"
        assert isinstance(result.exception, requests.ConnectionError)

    def test_malformed_json(self, client, session):
        session.get.return_value = make_response(json_error=ValueError("bad json"))

        result = client.verify_account("Player", "EUW", "EUW1")

        assert result.status == "error"
        assert isinstance(result.exception, ValueError)

    @pytest.mark.parametrize("payload", [{}, {"puuid": ""}, ["unexpected"]])
    def test_missing_account_id(self, client, session, payload):
        session.get.return_value = make_response(payload=payload)

        assert client.verify_account("Player", "EUW", "EUW1").status == "error"

    def test_invalid_region(self, client, session):
        with pytest.raises(ValidationError):
            client.verify_account("Player", "EUW", "MOON")
        session.get.assert_not_called()

    def test_close(self, client, session):
        client.close()

        session.close.assert_called_once_with()
