"""Bearer credential holder and token validation."""

import httpx

from openlens.github_client import (
    JSON_ACCEPT,
    GitHubClient,
    InvalidCredentialError,
    TransportError,
)
from openlens.models import UserProfile
from openlens.storage import StateStorage

TOKEN_KEY = "auth_token"


class CredentialHolder:
    """Single credential slot shared by every outgoing request.

    Loaded from state storage on construction; ``get`` never touches disk.
    """

    def __init__(self, storage: StateStorage, default: str = ""):
        """Initialize from persisted state.

        Args:
            storage: State storage holding the persisted token.
            default: Token to use when nothing is persisted.
        """
        self.storage = storage
        self._token: str = storage.get(TOKEN_KEY) or default

    def get(self) -> str:
        return self._token

    def set(self, token: str) -> None:
        """Store a token, or clear it with an empty string.

        Args:
            token: New token value.
        """
        self._token = token
        if token:
            self.storage.set(TOKEN_KEY, token)
        else:
            self.storage.remove(TOKEN_KEY)


async def validate_token(
    token: str,
    base_url: str = GitHubClient.BASE_URL,
    timeout: float = 30.0,
) -> UserProfile:
    """Check a candidate token against the identity endpoint.

    Does not store the token; the caller does that once this succeeds.

    Args:
        token: Candidate personal access token.
        base_url: GitHub API base URL.
        timeout: Request timeout in seconds.

    Returns:
        Profile of the token's owner.

    Raises:
        InvalidCredentialError: For any non-success response.
        TransportError: When no response was received.
    """
    headers = {"Accept": JSON_ACCEPT, "Authorization": f"Bearer {token}"}
    async with httpx.AsyncClient(timeout=timeout) as client:
        try:
            response = await client.get(f"{base_url}/user", headers=headers)
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}") from e

    if not response.is_success:
        raise InvalidCredentialError("Invalid token")
    return UserProfile.model_validate(response.json())
