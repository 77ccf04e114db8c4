import json
from datetime import datetime, timezone
from typing import Dict, Optional

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from calendar_api.config import AppConfig
from calendar_api.errors import AuthenticationError, UpstreamError
from calendar_api.logging_config import logger

SCOPES = ['https://www.googleapis.com/auth/calendar']
TOKEN_URI = "https://oauth2.googleapis.com/token"


def credentials_from_tokens(tokens: Optional[Dict], config: AppConfig) -> Optional[Credentials]:
    """
    Build Google credentials from a stored token document.

    Accepts both the google-auth layout (``token``, ``expiry``) and the layout
    written by the Node googleapis client (``access_token``, ``expiry_date``).
    Client id/secret fall back to the OAuth client secrets when the token
    document does not carry them.
    """
    if not tokens:
        return None

    client = config.oauth_client
    expiry = None
    if tokens.get("expiry"):
        expiry = datetime.fromisoformat(tokens["expiry"].rstrip("Z")).replace(tzinfo=None)
    elif tokens.get("expiry_date"):
        expiry = datetime.fromtimestamp(int(tokens["expiry_date"]) / 1000, tz=timezone.utc).replace(tzinfo=None)

    scopes = tokens.get("scopes") or tokens.get("scope") or SCOPES
    if isinstance(scopes, str):
        scopes = scopes.split()

    return Credentials(
        token=tokens.get("token") or tokens.get("access_token"),
        refresh_token=tokens.get("refresh_token"),
        token_uri=tokens.get("token_uri") or client.get("token_uri") or TOKEN_URI,
        client_id=tokens.get("client_id") or client.get("client_id"),
        client_secret=tokens.get("client_secret") or client.get("client_secret"),
        scopes=scopes,
        expiry=expiry,
    )


class CredentialStore:
    """Holds the current OAuth credential snapshot for the process.

    Request handlers only read it; the OAuth callback is the single writer and
    swaps the whole snapshot instead of mutating it.
    """

    def __init__(self, credentials: Optional[Credentials] = None):
        self._credentials = credentials

    @classmethod
    def from_config(cls, config: AppConfig) -> "CredentialStore":
        return cls(credentials_from_tokens(config.tokens, config))

    def current(self) -> Optional[Credentials]:
        return self._credentials

    def require(self) -> Credentials:
        """Return the credential, failing fast when no refresh token is present"""
        credentials = self._credentials
        if credentials is None or not credentials.refresh_token:
            raise AuthenticationError()
        return credentials

    def snapshot(self) -> Credentials:
        """Private copy of the credential for one request.

        Token refreshes triggered while serving the request land on the copy,
        so the stored credential is never mutated by readers.
        """
        credentials = self.require()
        return Credentials.from_authorized_user_info(json.loads(credentials.to_json()))

    def replace(self, credentials: Credentials) -> None:
        self._credentials = credentials
        logger.info("OAuth credential replaced")


def _build_flow(config: AppConfig) -> Flow:
    return Flow.from_client_config(
        config.client_config,
        scopes=SCOPES,
        redirect_uri=config.redirect_uri,
        autogenerate_code_verifier=False,
    )


def authorization_url(config: AppConfig) -> str:
    """Consent URL requesting calendar scope with offline access"""
    try:
        url, _state = _build_flow(config).authorization_url(
            access_type='offline',
            prompt='consent',
        )
    except ValueError as e:
        raise AuthenticationError(f"OAuth client is not configured: {e}") from e
    return url


def exchange_code(config: AppConfig, code: str) -> Credentials:
    """Trade an authorization code for credentials"""
    try:
        flow = _build_flow(config)
        flow.fetch_token(code=code)
    except ValueError as e:
        raise AuthenticationError(f"OAuth client is not configured: {e}") from e
    except Exception as e:
        raise UpstreamError(f"Authorization code exchange failed: {e}") from e
    return flow.credentials


def persist_tokens(credentials: Credentials, path: str) -> bool:
    """Write the credential to the token file; False if the filesystem refuses"""
    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(credentials.to_json())
    except OSError as e:
        logger.error(f"Could not write {path} ({e}); copy the token JSON into TOKENS_JSON instead")
        return False
    logger.info(f"OAuth tokens written to {path}")
    return True
