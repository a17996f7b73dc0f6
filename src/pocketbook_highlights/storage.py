"""Reconciling rendered documents with the document store (the vault)."""
from __future__ import annotations

import asyncio
import enum
import logging
import os
import stat
import tempfile
from pathlib import Path, PurePosixPath
from typing import Protocol

logger = logging.getLogger(__name__)


class PathConflict(RuntimeError):
    """Raised when a document path is occupied by something that is not a document."""

    def __init__(self, path: str) -> None:
        super().__init__(f"{path} is not a document, can only write to documents.")
        self.path = path


class EntryKind(enum.Enum):
    ABSENT = "absent"
    DOCUMENT = "document"
    OTHER = "other"


class DocumentStore(Protocol):
    """Low level primitives of the store the highlights are written into."""

    async def probe(self, path: str) -> EntryKind: ...

    async def exists(self, path: str) -> bool: ...

    async def create(self, path: str, content: str) -> None: ...

    async def read(self, path: str) -> str: ...

    async def overwrite(self, path: str, content: str) -> None: ...

    async def create_folder(self, path: str) -> None: ...


class UnsafePath(ValueError):
    """Raised when a document path would point outside the store root."""


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class FileSystemStore:
    """Stores documents as files below ``root``; paths are vault-relative POSIX paths."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise UnsafePath(f"{path!r} is not a path inside the vault")
        return self.root.joinpath(*relative.parts)

    async def probe(self, path: str) -> EntryKind:
        return await asyncio.to_thread(self._probe, self.resolve(path))

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self.resolve(path).exists)

    async def create(self, path: str, content: str) -> None:
        target = self.resolve(path)
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(self._write_atomic, target, content)

    async def read(self, path: str) -> str:
        return await asyncio.to_thread(self.resolve(path).read_text, encoding="utf-8")

    async def overwrite(self, path: str, content: str) -> None:
        await asyncio.to_thread(self._write_atomic, self.resolve(path), content)

    async def create_folder(self, path: str) -> None:
        await asyncio.to_thread(self.resolve(path).mkdir, parents=True, exist_ok=True)

    @staticmethod
    def _probe(target: Path) -> EntryKind:
        if target.is_file():
            return EntryKind.DOCUMENT
        if target.exists():
            return EntryKind.OTHER
        return EntryKind.ABSENT

    @staticmethod
    def _write_atomic(target: Path, content: str) -> None:
        # Old content stays in place until the new file is complete.
        try:
            mode = stat.S_IMODE(target.stat().st_mode)
        except FileNotFoundError:
            mode = _default_file_mode()
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(content)
            # mkstemp creates owner-only files.
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class StoreReconciler:
    """Decides between create, overwrite and append for each document write."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def exists(self, path: str) -> bool:
        return await self.store.exists(path)

    async def ensure_folder(self, path: str) -> None:
        if await self.store.exists(path):
            return
        logger.debug("Creating folder %s", path)
        await self.store.create_folder(path)

    async def write_overwrite(self, path: str, content: str) -> None:
        kind = await self.store.probe(path)
        if kind is EntryKind.ABSENT:
            logger.debug("Creating %s", path)
            await self.store.create(path, content)
        elif kind is EntryKind.DOCUMENT:
            logger.debug("Overwriting %s", path)
            await self.store.overwrite(path, content)
        else:
            raise PathConflict(path)

    async def write_append(self, path: str, content: str) -> None:
        """Append ``content`` to the document at ``path``.

        Unlike :meth:`write_overwrite` this is not idempotent: every call adds
        another block, so callers append each highlight only once per run.
        """

        kind = await self.store.probe(path)
        if kind is EntryKind.ABSENT:
            logger.debug("Creating %s", path)
            await self.store.create(path, content)
        elif kind is EntryKind.DOCUMENT:
            logger.debug("Appending to %s", path)
            existing = await self.store.read(path)
            await self.store.overwrite(path, existing + "\n" + content)
        else:
            raise PathConflict(path)
