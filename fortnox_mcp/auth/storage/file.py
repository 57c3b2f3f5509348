"""File-based token storage.

Stores one JSON document per subject, providing persistence across server
restarts on a single host. For multiple servers, use the redis backend.
Disk access runs in worker threads.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import quote

from pydantic import ValidationError

from fortnox_mcp.auth.credentials import CredentialSet

logger = logging.getLogger(__name__)


class FileTokenStorage:
    """Token storage writing credential sets as JSON files on disk."""

    def __init__(self, storage_dir: str | Path = ".fortnox_tokens") -> None:
        self._storage_dir = Path(storage_dir)
        self._storage_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Initialized FileTokenStorage at %s", self._storage_dir)

    def _get_file_path(self, subject_id: str) -> Path:
        """Get file path for a subject (percent-encoded, no path separators)."""
        return self._storage_dir / f"{quote(subject_id, safe='')}.json"

    async def get(self, subject_id: str) -> CredentialSet | None:
        return await asyncio.to_thread(self._read, subject_id)

    async def put(self, subject_id: str, credentials: CredentialSet) -> None:
        await asyncio.to_thread(self._write, subject_id, credentials.model_dump_json(indent=2))

    async def delete(self, subject_id: str) -> None:
        await asyncio.to_thread(self._get_file_path(subject_id).unlink, missing_ok=True)

    async def exists(self, subject_id: str) -> bool:
        return await asyncio.to_thread(self._get_file_path(subject_id).exists)

    def _read(self, subject_id: str) -> CredentialSet | None:
        file_path = self._get_file_path(subject_id)
        if not file_path.exists():
            return None
        try:
            return CredentialSet.model_validate_json(file_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Failed to read credentials for %s: %s", subject_id, e)
            return None

    def _write(self, subject_id: str, document: str) -> None:
        # Readers see either the old document or the new one
        file_path = self._get_file_path(subject_id)
        fd, tmp_name = tempfile.mkstemp(dir=self._storage_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document)
            os.replace(tmp_name, file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
