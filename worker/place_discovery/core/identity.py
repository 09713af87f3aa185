"""Resolution of the caller's Google Places key."""

import base64
import json
import logging
from typing import Any, Dict, Mapping, Optional

import requests

from place_discovery.core.config import Settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10
PLACES_KEY_ATTRIBUTE = "google_places_key"


class CredentialResolver:
    """Returns the Places credential for a request, or None when there is none."""

    def resolve(self, headers: Mapping[str, str]) -> Optional[str]:
        raise NotImplementedError


class StaticCredentialResolver(CredentialResolver):
    def __init__(self, credential: Optional[str] = None) -> None:
        self._credential = credential or None

    def resolve(self, headers: Mapping[str, str]) -> Optional[str]:
        return self._credential


def bearer_token(headers: Mapping[str, str]) -> Optional[str]:
    auth = headers.get("Authorization") or headers.get("authorization") or ""
    if not auth.startswith("Bearer "):
        return None
    return auth[len("Bearer "):].strip() or None


def decode_jwt_subject(token: str) -> str:
    """Read ``sub`` from an unverified JWT payload; Keycloak verifies on the admin lookup."""
    parts = token.split(".")
    if len(parts) < 2:
        raise ValueError("invalid_jwt")
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    payload = json.loads(base64.urlsafe_b64decode(segment.encode("ascii")).decode("utf-8"))
    subject = payload.get("sub") if isinstance(payload, dict) else None
    if not subject:
        raise ValueError("no_sub")
    return subject


class KeycloakCredentialResolver(CredentialResolver):
    """Looks the key up in the ``google_places_key`` attribute of the Keycloak user."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.base_url = settings.keycloak_url
        self.realm = settings.keycloak_realm
        self._admin_username = settings.keycloak_admin_username
        self._admin_password = settings.keycloak_admin_password
        self.session = session or requests.Session()

    def _subject(self, token: str) -> str:
        try:
            return decode_jwt_subject(token)
        except (ValueError, UnicodeDecodeError):
            response = self.session.get(
                f"{self.base_url}/realms/{self.realm}/protocol/openid-connect/userinfo",
                headers={"Authorization": f"Bearer {token}"},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            return response.json()["sub"]

    def _admin_token(self) -> str:
        response = self.session.post(
            f"{self.base_url}/realms/master/protocol/openid-connect/token",
            data={
                "client_id": "admin-cli",
                "grant_type": "password",
                "username": self._admin_username,
                "password": self._admin_password,
            },
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()["access_token"]

    def _user(self, admin_token: str, user_id: str) -> Dict[str, Any]:
        response = self.session.get(
            f"{self.base_url}/admin/realms/{self.realm}/users/{user_id}",
            headers={"Authorization": f"Bearer {admin_token}"},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()

    def resolve(self, headers: Mapping[str, str]) -> Optional[str]:
        token = bearer_token(headers)
        if not token:
            return None
        try:
            user = self._user(self._admin_token(), self._subject(token))
        except (requests.RequestException, KeyError, ValueError) as exc:
            logger.warning("Keycloak credential lookup failed: %s", exc.__class__.__name__)
            return None

        value = (user.get("attributes") or {}).get(PLACES_KEY_ATTRIBUTE)
        if isinstance(value, list):
            value = value[0] if value else None
        if not value:
            return None
        return str(value).strip() or None


def build_resolver(settings: Settings) -> CredentialResolver:
    if settings.keycloak_url:
        return KeycloakCredentialResolver(settings)
    return StaticCredentialResolver()
