import asyncio
import time
from dataclasses import dataclass
from pathlib import Path

import httpx
import jwt
import structlog
from cryptography.hazmat.primitives import serialization

from app.config import settings

logger = structlog.get_logger(__name__)

TOKEN_EXCHANGE_ATTEMPTS = 3
TOKEN_EXCHANGE_BACKOFF = 1.0
JWT_BACKDATE_SECONDS = 60
JWT_LIFETIME_SECONDS = 540


class GitHubAppConfigurationError(Exception):
    """The GitHub App credentials are missing or malformed.

    Retrying cannot help; the deployment configuration has to be fixed.
    """


class GitHubAuthError(Exception):
    """The installation token could not be obtained."""


@dataclass(frozen=True)
class GitHubSession:
    token: str
    api_url: str

    def __repr__(self) -> str:
        return f"GitHubSession(api_url={self.api_url!r})"


def describe_private_key(private_key: str | None) -> str:
    """Describe a PEM key for diagnostics without exposing key material."""
    lines = (private_key or "").strip().splitlines()
    if not lines:
        return "<missing>"
    first = lines[0][:40]
    last = lines[-1][-40:] if len(lines) > 1 else ""
    if not first.startswith("-----"):
        first = "<no PEM header>"
    if not last.startswith("-----"):
        last = "<no PEM footer>"
    return f"{first}...{last} ({len(lines)} lines)"


def load_private_key() -> str:
    if settings.github_app_private_key:
        return settings.github_app_private_key

    if settings.github_app_private_key_path:
        path = Path(settings.github_app_private_key_path)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise GitHubAppConfigurationError(
                f"Unable to read GitHub App private key from {path}: {e}"
            ) from e

    return ""


def validate_private_key(private_key: str) -> str:
    key = private_key.strip()

    if not key:
        raise GitHubAppConfigurationError("GitHub App private key is not configured")

    if "\n" not in key:
        if "\\n" in key:
            raise GitHubAppConfigurationError(
                "GitHub App private key contains escaped newlines ('\\n') instead "
                "of real line breaks; store the PEM file contents unmodified"
            )
        raise GitHubAppConfigurationError(
            "GitHub App private key is collapsed to a single line; the PEM "
            "line breaks must be preserved"
        )

    if not key.startswith("-----BEGIN") or "PRIVATE KEY-----" not in key:
        raise GitHubAppConfigurationError(
            "GitHub App private key is not a PEM encoded private key"
        )

    try:
        serialization.load_pem_private_key(key.encode(), password=None)
    except (ValueError, TypeError) as e:
        raise GitHubAppConfigurationError(
            f"GitHub App private key could not be loaded: {type(e).__name__}"
        ) from e

    return key


def create_app_jwt(app_id: str, private_key: str, now: int | None = None) -> str:
    issued_at = int(time.time()) if now is None else now
    payload = {
        "iat": issued_at - JWT_BACKDATE_SECONDS,
        "exp": issued_at + JWT_LIFETIME_SECONDS,
        "iss": app_id,
    }
    try:
        return jwt.encode(payload, private_key, algorithm="RS256")
    except (ValueError, TypeError, jwt.PyJWTError) as e:
        raise GitHubAppConfigurationError(
            f"Unable to sign GitHub App JWT: {type(e).__name__}"
        ) from e


def _is_transient(status_code: int) -> bool:
    return status_code >= 500 or status_code == 429


async def obtain_session(
    app_id: str | None = None,
    installation_id: str | None = None,
    private_key: str | None = None,
    api_url: str | None = None,
) -> GitHubSession:
    """Mint an installation access token for one processing pass.

    Sessions are not cached: a fresh token is exchanged for every event.
    Raises GitHubAppConfigurationError without any network call when the
    credentials are unusable, and GitHubAuthError when the exchange fails.
    """
    app_id = app_id if app_id is not None else settings.github_app_id
    installation_id = (
        installation_id
        if installation_id is not None
        else settings.github_installation_id
    )
    private_key = private_key if private_key is not None else load_private_key()
    api_url = (api_url or settings.github_api_url).rstrip("/")

    logger.debug(
        "Preparing GitHub App credentials",
        app_id=app_id,
        installation_id=installation_id,
        private_key_configured=bool(private_key),
        private_key=describe_private_key(private_key),
    )

    if not app_id:
        raise GitHubAppConfigurationError("GITHUB_APP_ID is not configured")
    if not installation_id:
        raise GitHubAppConfigurationError("GITHUB_INSTALLATION_ID is not configured")

    key = validate_private_key(private_key)
    app_jwt = create_app_jwt(str(app_id), key)

    url = f"{api_url}/app/installations/{installation_id}/access_tokens"
    headers = {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {app_jwt}",
        "X-GitHub-Api-Version": "2022-11-28",
    }

    last_error = ""
    for attempt in range(1, TOKEN_EXCHANGE_ATTEMPTS + 1):
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url, headers=headers, timeout=settings.github_request_timeout
                )
                response.raise_for_status()
                data = response.json()
                token = data.get("token") if isinstance(data, dict) else None
                if not token:
                    raise GitHubAuthError(
                        "Token exchange response did not contain a token"
                    )
                logger.info(
                    "Obtained GitHub installation token",
                    installation_id=installation_id,
                    attempt=attempt,
                )
                return GitHubSession(token=token, api_url=api_url)
        except httpx.RequestError as e:
            last_error = f"{type(e).__name__}: {e}"
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if not _is_transient(status_code):
                logger.error(
                    "GitHub rejected the installation token exchange",
                    installation_id=installation_id,
                    status_code=status_code,
                    response_text=e.response.text,
                )
                raise GitHubAuthError(
                    f"Token exchange failed with HTTP {status_code}"
                ) from e
            last_error = f"HTTP {status_code}"
        except ValueError as e:
            raise GitHubAuthError("Token exchange returned invalid JSON") from e

        if attempt < TOKEN_EXCHANGE_ATTEMPTS:
            logger.warning(
                "Transient error exchanging installation token, retrying after delay",
                installation_id=installation_id,
                error=last_error,
                retry_count=attempt,
                max_retries=TOKEN_EXCHANGE_ATTEMPTS - 1,
                delay_seconds=TOKEN_EXCHANGE_BACKOFF,
            )
            await asyncio.sleep(TOKEN_EXCHANGE_BACKOFF)

    logger.error(
        "Giving up on installation token exchange",
        installation_id=installation_id,
        error=last_error,
        attempts=TOKEN_EXCHANGE_ATTEMPTS,
    )
    raise GitHubAuthError(
        f"Token exchange failed after {TOKEN_EXCHANGE_ATTEMPTS} attempts: {last_error}"
    )
