"""Process-wide credential store for outbound service calls."""

from functools import lru_cache

from callflow.config.settings import get_settings


class CredentialStore:
    """Holds the bearer token sent to every external service.

    The token may be rotated at runtime with set_token(); gateways read it
    on every request.
    """

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        self._token = token

    def auth_headers(self) -> dict[str, str]:
        """JSON headers with bearer authorization."""
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self._token or ''}",
        }


@lru_cache
def get_credential_store() -> CredentialStore:
    """Get the process-wide credential store."""
    return CredentialStore(token=get_settings().service_auth_token)
