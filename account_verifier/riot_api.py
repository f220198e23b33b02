from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Literal
from urllib.parse import quote

import requests

from bracket_core.validation import validate_region

log: Final = logging.getLogger("bracket-platform.riot")

REGIONAL_URLS: Final[dict[str, str]] = {
    "americas": "https://americas.api.riotgames.com",
    "europe": "https://europe.api.riotgames.com",
    "asia": "https://asia.api.riotgames.com",
}
_REGION_ROUTING: Final[dict[str, str]] = {
    "NA1": "americas",
    "BR1": "americas",
    "LAN": "americas",
    "LAS": "americas",
    "EUW1": "europe",
    "EUN1": "europe",
    "TR1": "europe",
    "RU": "europe",
    "KR": "asia",
    "JP1": "asia",
}
ACCOUNT_PATH: Final = "/riot/account/v1/accounts/by-riot-id/{game_name}/{tag_line}"

FetchStatus = Literal["ok", "not_found", "rate_limited", "error"]


@dataclass(slots=True)
class RiotAccount:
    account_id: str
    display_name: str


@dataclass(slots=True)
class AccountFetchResult:
    """Return object describing the result of an account lookup."""

    status: FetchStatus
    account: RiotAccount | None = None
    exception: Exception | None = None


def regional_url(region: str) -> str:
    """Return the routing host for a platform region, defaulting to americas."""
    return REGIONAL_URLS[_REGION_ROUTING.get(region.upper(), "americas")]


class RiotAccountClient:
    def __init__(
        self,
        api_key: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._session = session or requests.Session()
        self._timeout = timeout

    def verify_account(self, game_name: str, tag_line: str, region: str) -> AccountFetchResult:
        region_code = validate_region(region)
        url = regional_url(region_code) + ACCOUNT_PATH.format(
            game_name=quote(game_name.strip(), safe=""),
            tag_line=quote(tag_line.strip(), safe=""),
        )
        try:
            resp = self._session.get(
                url,
                headers={"X-Riot-Token": self._api_key},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            log.error("Riot API request failed for %s#%s: %s", game_name, tag_line, exc)
            return AccountFetchResult(status="error", exception=exc)

        if resp.status_code == 404:
            log.warning("Riot account %s#%s not found", game_name, tag_line)
            return AccountFetchResult(status="not_found")
        if resp.status_code == 429:
            log.warning("Riot API rate limit hit while verifying %s#%s", game_name, tag_line)
            return AccountFetchResult(status="rate_limited")
        if resp.status_code != 200:
            log.error(
                "Riot API returned %s for %s#%s", resp.status_code, game_name, tag_line
            )
            return AccountFetchResult(status="error")

        try:
            data = resp.json()
        except ValueError as exc:
            log.error("Riot API returned malformed JSON: %s", exc)
            return AccountFetchResult(status="error", exception=exc)

        puuid = data.get("puuid") if isinstance(data, dict) else None
        if not puuid:
            return AccountFetchResult(status="error")
        display_name = f"{data.get('gameName', game_name)}#{data.get('tagLine', tag_line)}"
        return AccountFetchResult(
            status="ok",
            account=RiotAccount(account_id=str(puuid), display_name=display_name),
        )

    def close(self) -> None:
        self._session.close()


__all__ = [
    "AccountFetchResult",
    "RiotAccount",
    "RiotAccountClient",
    "regional_url",
]
