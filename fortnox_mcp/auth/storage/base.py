"""
Base protocol/interface for token storage implementations.
All storage backends must implement this protocol.
"""

from typing import Protocol, runtime_checkable

from fortnox_mcp.auth.credentials import CredentialSet


@runtime_checkable
class TokenStorage(Protocol):
    """
    Protocol defining CRUD persistence of credential sets keyed by subject id.
    Backends own no business logic: expiry and refresh are the providers' job.
    """

    async def get(self, subject_id: str) -> CredentialSet | None:
        """
        Get the credentials stored for a subject.

        Args:
            subject_id: Unique subject identifier

        Returns:
            The stored credential set, or None if not found
        """
        ...

    async def put(self, subject_id: str, credentials: CredentialSet) -> None:
        """
        Store credentials for a subject, replacing any previous set whole.

        Args:
            subject_id: Unique subject identifier
            credentials: Credential set to store
        """
        ...

    async def delete(self, subject_id: str) -> None:
        """
        Delete the credentials stored for a subject. Missing subjects are ignored.

        Args:
            subject_id: Unique subject identifier
        """
        ...

    async def exists(self, subject_id: str) -> bool:
        """
        Check if credentials exist for a subject.

        Args:
            subject_id: Unique subject identifier
        """
        ...
