"""Riot account verification helpers."""

from .riot_api import AccountFetchResult, RiotAccount, RiotAccountClient, regional_url

__all__ = ["AccountFetchResult", "RiotAccount", "RiotAccountClient", "regional_url"]
