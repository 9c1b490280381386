"""Pluggable sanctions / PEP / adverse-media screening capability."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import requests
from flask import current_app

from utils.errors import ExternalServiceFailure

MATCH_TYPE_ALIASES = {
    "SANCTIONS": "SANCTIONS",
    "SANCTION": "SANCTIONS",
    "PEP": "PEP",
    "ADVERSE_MEDIA": "ADVERSE_MEDIA",
    "ADVERSE-MEDIA": "ADVERSE_MEDIA",
    "MEDIA": "ADVERSE_MEDIA",
}


@dataclass
class ScreeningSubject:
    subject_type: str
    name: str
    date_of_birth: Optional[str] = None
    nationality: Optional[str] = None
    company_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_type": self.subject_type,
            "name": self.name,
            "date_of_birth": self.date_of_birth,
            "nationality": self.nationality,
            "company_number": self.company_number,
        }


@dataclass
class MatchCandidate:
    match_type: str
    match_score: int
    entity_name: str
    list_name: Optional[str] = None
    list_type: Optional[str] = None
    aliases: List[str] = field(default_factory=list)
    nationality: List[str] = field(default_factory=list)
    positions: List[str] = field(default_factory=list)


class ScreeningProvider(Protocol):
    def screen(self, subject: ScreeningSubject) -> List[MatchCandidate]:
        ...


class NullScreeningProvider:
    """Used when no provider is configured; never reports a hit."""

    def screen(self, subject: ScreeningSubject) -> List[MatchCandidate]:
        return []


class HttpScreeningProvider:
    """JSON-over-HTTP adapter for a hosted screening API."""

    def __init__(self, url: str, api_key: str = "", timeout: int = 20, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def screen(self, subject: ScreeningSubject) -> List[MatchCandidate]:
        try:
            resp = self.session.post(self.url, json=subject.to_dict(), headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise ExternalServiceFailure(f"Screening provider request failed: {exc}") from exc
        except ValueError as exc:
            raise ExternalServiceFailure("Screening provider returned invalid JSON") from exc
        return parse_matches(payload)


def parse_matches(payload: Any) -> List[MatchCandidate]:
    rows = payload.get("matches", []) if isinstance(payload, dict) else payload
    if not isinstance(rows, list):
        raise ExternalServiceFailure("Screening provider response missing match list")
    matches: List[MatchCandidate] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        raw_type = str(row.get("match_type") or row.get("matchType") or "").upper()
        match_type = MATCH_TYPE_ALIASES.get(raw_type)
        if not match_type:
            continue
        try:
            score = int(round(float(row.get("match_score", row.get("matchScore", 0)))))
        except (TypeError, ValueError):
            continue
        matches.append(
            MatchCandidate(
                match_type=match_type,
                match_score=max(0, min(100, score)),
                entity_name=str(row.get("entity_name") or row.get("entityName") or ""),
                list_name=row.get("list_name") or row.get("listName"),
                list_type=row.get("list_type") or row.get("listType"),
                aliases=list(row.get("aliases") or []),
                nationality=list(row.get("nationality") or []),
                positions=list(row.get("positions") or []),
            )
        )
    return matches


class ScreeningGateway:
    """Flask extension that resolves the configured provider per app."""

    def __init__(self, app=None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app, provider: Optional[ScreeningProvider] = None) -> None:
        if provider is None:
            url = app.config.get("SCREENING_PROVIDER_URL")
            if url:
                provider = HttpScreeningProvider(
                    url,
                    api_key=app.config.get("SCREENING_PROVIDER_API_KEY", ""),
                    timeout=int(app.config.get("SCREENING_PROVIDER_TIMEOUT", 20)),
                )
            else:
                provider = NullScreeningProvider()
        app.extensions["screening_provider"] = provider


def get_screening_provider() -> ScreeningProvider:
    return current_app.extensions["screening_provider"]
