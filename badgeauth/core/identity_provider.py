from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests


class IdentityProviderError(RuntimeError):
    """Transport failure or non-2xx answer from the identity provider."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class IdentityAlreadyExists(IdentityProviderError):
    pass


@dataclass(frozen=True)
class IdentityAccount:
    id: str
    key: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExchangeToken:
    """One-time artifact the client redeems for a live session."""

    action_link: str
    token: Optional[str] = None


class IdentityProvider:
    """
    Contract of the external account/session service.

    The broker only needs four calls: find by key, create by key, resolve by
    id, and mint a one-time exchange link for a key.
    """

    def find_account(self, key: str) -> Optional[IdentityAccount]:
        raise NotImplementedError

    def create_account(self, key: str, metadata: Dict[str, Any]) -> IdentityAccount:
        raise NotImplementedError

    def get_account(self, account_id: str) -> Optional[IdentityAccount]:
        raise NotImplementedError

    def issue_exchange_token(self, key: str) -> ExchangeToken:
        raise NotImplementedError


def _account_from_json(data: Dict[str, Any]) -> IdentityAccount:
    user = data.get("user") if isinstance(data.get("user"), dict) else data
    acc_id = str(user.get("id") or "")
    key = str(user.get("email") or "")
    if not acc_id or not key:
        raise IdentityProviderError("Malformed account payload.")
    meta = user.get("user_metadata") or {}
    return IdentityAccount(id=acc_id, key=key, metadata=dict(meta) if isinstance(meta, dict) else {})


@dataclass
class HttpIdentityProvider(IdentityProvider):
    """Admin REST client (bearer service key)."""

    base_url: str
    service_key: str
    timeout_seconds: float = 10.0

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, *, params: Optional[Dict[str, Any]] = None, json: Optional[Dict[str, Any]] = None) -> requests.Response:
        try:
            r = requests.request(method, self._url(path), headers=self._headers(), params=params, json=json, timeout=self.timeout_seconds)
        except requests.RequestException as e:
            raise IdentityProviderError(f"{method} {path} failed: {type(e).__name__}") from e
        return r

    @staticmethod
    def _json(r: requests.Response) -> Dict[str, Any]:
        try:
            data = r.json()
        except ValueError as e:
            raise IdentityProviderError("Identity provider returned invalid JSON.", status_code=r.status_code) from e
        if not isinstance(data, dict):
            raise IdentityProviderError("Identity provider returned an unexpected payload.", status_code=r.status_code)
        return data

    def find_account(self, key: str) -> Optional[IdentityAccount]:
        r = self._request("GET", "/admin/users", params={"email": key})
        if r.status_code == 404:
            return None
        if r.status_code != 200:
            raise IdentityProviderError(f"Account lookup failed: HTTP {r.status_code}", status_code=r.status_code)
        data = self._json(r)
        for u in data.get("users") or []:
            if isinstance(u, dict) and str(u.get("email") or "").lower() == key.lower():
                return _account_from_json(u)
        return None

    def create_account(self, key: str, metadata: Dict[str, Any]) -> IdentityAccount:
        payload = {
            "email": key,
            # Never used to sign in; the badge PIN is the credential.
            "password": secrets.token_urlsafe(32),
            "email_confirm": True,
            "user_metadata": dict(metadata or {}),
        }
        r = self._request("POST", "/admin/users", json=payload)
        if r.status_code in (409, 422):
            raise IdentityAlreadyExists(f"Account already exists: HTTP {r.status_code}", status_code=r.status_code)
        if r.status_code not in (200, 201):
            raise IdentityProviderError(f"Account creation failed: HTTP {r.status_code}", status_code=r.status_code)
        return _account_from_json(self._json(r))

    def get_account(self, account_id: str) -> Optional[IdentityAccount]:
        r = self._request("GET", f"/admin/users/{account_id}")
        if r.status_code == 404:
            return None
        if r.status_code != 200:
            raise IdentityProviderError(f"Account fetch failed: HTTP {r.status_code}", status_code=r.status_code)
        return _account_from_json(self._json(r))

    def issue_exchange_token(self, key: str) -> ExchangeToken:
        r = self._request("POST", "/admin/generate_link", json={"type": "magiclink", "email": key})
        if r.status_code not in (200, 201):
            raise IdentityProviderError(f"Link generation failed: HTTP {r.status_code}", status_code=r.status_code)
        data = self._json(r)
        props = data.get("properties") if isinstance(data.get("properties"), dict) else data
        link = str(props.get("action_link") or "")
        if not link:
            raise IdentityProviderError("Link generation returned no action link.", status_code=r.status_code)
        token = props.get("hashed_token") or props.get("email_otp")
        return ExchangeToken(action_link=link, token=str(token) if token else None)
