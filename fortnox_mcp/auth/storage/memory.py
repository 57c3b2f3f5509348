"""In-memory token storage.

Useful for development and testing. Tokens are lost when the process exits.
"""

from fortnox_mcp.auth.credentials import CredentialSet


class MemoryTokenStorage:
    """Token storage backed by a dict.

    Credential sets are frozen, so handing out the stored instance cannot
    leak partial updates back into storage.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, CredentialSet] = {}

    async def get(self, subject_id: str) -> CredentialSet | None:
        return self._tokens.get(subject_id)

    async def put(self, subject_id: str, credentials: CredentialSet) -> None:
        self._tokens[subject_id] = credentials

    async def delete(self, subject_id: str) -> None:
        self._tokens.pop(subject_id, None)

    async def exists(self, subject_id: str) -> bool:
        return subject_id in self._tokens

    def clear(self) -> None:
        """Clear all tokens (for testing)."""
        self._tokens.clear()

    def __len__(self) -> int:
        return len(self._tokens)
