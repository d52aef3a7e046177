"""
Credentials for the speech and storage endpoints.

Two kinds are supported:
- ApiKeyCredential: a simple key restricted to synchronous recognition
- ServiceAccountCredential: an elevated credential that can run long-running
  recognition and use transient object storage
"""

import json
import logging
from typing import Any, Dict, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from ..config import ConfigManager
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class ApiKeyCredential:
    """API key passed as the `key` query parameter."""

    supports_long_running = False

    def __init__(self, api_key: str):
        if not api_key or not api_key.strip():
            raise ConfigurationError("Google API key not configured")
        self.api_key = api_key.strip()

    def apply(self, params: Dict[str, str], headers: Dict[str, str]) -> None:
        params["key"] = self.api_key


class ServiceAccountCredential:
    """OAuth2 bearer token minted from a service-account key."""

    supports_long_running = True

    def __init__(self, info: Dict[str, Any]):
        try:
            self._credentials = service_account.Credentials.from_service_account_info(
                info, scopes=[CLOUD_PLATFORM_SCOPE]
            )
        except (ValueError, KeyError) as e:
            raise ConfigurationError(f"Invalid service account credentials: {e}")
        self.project_id: Optional[str] = info.get("project_id")

    @classmethod
    def from_file(cls, path: str) -> "ServiceAccountCredential":
        try:
            with open(path, "r", encoding="utf-8") as f:
                info = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read service account file {path}: {e}")
        return cls(info)

    @property
    def google_credentials(self) -> service_account.Credentials:
        return self._credentials

    def access_token(self) -> str:
        if not self._credentials.valid:
            try:
                self._credentials.refresh(Request())
            except GoogleAuthError as e:
                raise ConfigurationError(f"Service account token exchange failed: {e}")
            logger.info("Refreshed service account access token")
        return self._credentials.token

    def apply(self, params: Dict[str, str], headers: Dict[str, str]) -> None:
        headers["Authorization"] = f"Bearer {self.access_token()}"


def credential_from_config(api_key: Optional[str] = None, service_account_file: Optional[str] = None):
    """
    Build the credential to use from explicit values or configuration.

    A service account file takes precedence over an API key, since it unlocks
    long-running recognition.

    Raises:
        ConfigurationError: If neither credential is configured
    """
    account_file = ConfigManager.get("GOOGLE_APPLICATION_CREDENTIALS", service_account_file)
    if account_file:
        return ServiceAccountCredential.from_file(account_file)
    return ApiKeyCredential(ConfigManager.get("GOOGLE_API_KEY", api_key))
