import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytz
from dotenv import load_dotenv

# Resolve project root (the directory holding backend/ and .env)
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
load_dotenv(dotenv_path=os.path.join(project_root, ".env"))

DEFAULT_TIMEZONE = "America/Costa_Rica"
DEFAULT_PORT = 3000
DEFAULT_REDIRECT_URI = "http://localhost:3000/oauth2callback"


def _resolve_path(value: str) -> str:
    return os.path.abspath(os.path.join(project_root, value))


def read_json_fallback(inline_value: Optional[str], file_path: str, name: str) -> Optional[Dict]:
    """Parse JSON from an inline secret, falling back to a file when the secret is unset."""
    if inline_value:
        try:
            return json.loads(inline_value)
        except json.JSONDecodeError as e:
            raise ValueError(f"{name} is not valid JSON: {e.msg}") from None
    if os.path.exists(file_path):
        with open(file_path, "r", encoding="utf-8") as fh:
            try:
                return json.load(fh)
            except json.JSONDecodeError as e:
                raise ValueError(f"{file_path} is not valid JSON: {e.msg}") from None
    return None


def _default_timezone() -> str:
    """DEFAULT_TIMEZONE wins; TZ is honoured only when it names an IANA zone"""
    explicit = os.getenv("DEFAULT_TIMEZONE")
    if explicit:
        return explicit
    process_tz = os.getenv("TZ")
    if process_tz in pytz.all_timezones_set:
        return process_tz
    return DEFAULT_TIMEZONE


def _safe_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Invalid integer for {env_var}: {raw!r}") from None


@dataclass(frozen=True)
class AppConfig:
    """Process-wide settings, resolved once at startup."""

    default_timezone: str = DEFAULT_TIMEZONE
    port: int = DEFAULT_PORT
    client_config: Dict = field(default_factory=dict)
    tokens: Optional[Dict] = None
    token_path: str = _resolve_path("tokens.json")
    redirect_uri: str = DEFAULT_REDIRECT_URI
    log_level: str = "INFO"
    log_file: Optional[str] = "app.log"

    @property
    def oauth_client(self) -> Dict:
        """The ``installed`` or ``web`` section of the OAuth client secrets."""
        return self.client_config.get("installed") or self.client_config.get("web") or {}

    def validate(self) -> bool:
        missing: List[str] = []
        if self.default_timezone not in pytz.all_timezones_set:
            missing.append(f"DEFAULT_TIMEZONE (unknown timezone {self.default_timezone!r})")
        if not 0 < self.port < 65536:
            missing.append(f"PORT (out of range: {self.port})")

        if missing:
            raise ValueError(f"Invalid configuration: {', '.join(missing)}")

        return True


def load_config() -> AppConfig:
    """Build the config from the environment, inline secrets first and files second."""
    credentials_path = _resolve_path(os.getenv("CREDENTIALS_PATH", "credentials.json"))
    token_path = _resolve_path(os.getenv("TOKEN_PATH", "tokens.json"))

    client_config = read_json_fallback(
        os.getenv("CREDENTIALS_JSON"), credentials_path, "CREDENTIALS_JSON"
    ) or {}
    tokens = read_json_fallback(os.getenv("TOKENS_JSON"), token_path, "TOKENS_JSON")

    oauth_client = client_config.get("installed") or client_config.get("web") or {}
    redirect_uris = oauth_client.get("redirect_uris") or []
    redirect_uri = (
        (redirect_uris[0] if redirect_uris else None)
        or os.getenv("OAUTH_REDIRECT_URI")
        or DEFAULT_REDIRECT_URI
    )

    log_file = os.getenv("LOG_FILE", "app.log")

    return AppConfig(
        default_timezone=_default_timezone(),
        port=_safe_int("PORT", DEFAULT_PORT),
        client_config=client_config,
        tokens=tokens,
        token_path=token_path,
        redirect_uri=redirect_uri,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=log_file or None,
    )
