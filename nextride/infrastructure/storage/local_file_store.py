"""
Local-disk media store.

Files are written under settings.upload_dir with a generated name so two
uploads of "front.jpg" never collide. Paths handed back are relative to
the upload root, which is what listings store. Disk I/O runs in the
default executor.
"""
import asyncio
import re
from functools import partial
from pathlib import Path

import structlog

from nextride.application.interfaces.collaborators import FileStore, MediaUpload
from nextride.config import settings
from nextride.domain.identifiers import new_record_id

logger = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("-", Path(filename).name).strip("-.")
    return name or "upload"


def _write_files(root: Path, folder: str, files: list[MediaUpload]) -> list[str]:
    target_dir = root / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    paths: list[str] = []
    for upload in files:
        relative = f"{folder}/{new_record_id()}-{_safe_name(upload.filename)}"
        (root / relative).write_bytes(upload.content)
        paths.append(relative)
    return paths


def _remove_files(root: Path, paths: list[str]) -> list[str]:
    missing: list[str] = []
    resolved_root = root.resolve()
    for relative in paths:
        target = (root / relative).resolve()
        if resolved_root not in target.parents:
            missing.append(relative)
            continue
        try:
            target.unlink()
        except FileNotFoundError:
            missing.append(relative)
    return missing


class LocalFileStore(FileStore):
    def __init__(self, upload_dir: str = settings.upload_dir) -> None:
        self._root = Path(upload_dir)

    async def save(self, files: list[MediaUpload], folder: str) -> list[str]:
        loop = asyncio.get_running_loop()
        paths = await loop.run_in_executor(None, partial(_write_files, self._root, folder, files))
        logger.info("media_saved", folder=folder, count=len(paths))
        return paths

    async def delete(self, paths: list[str]) -> None:
        if not paths:
            return
        loop = asyncio.get_running_loop()
        missing = await loop.run_in_executor(None, partial(_remove_files, self._root, paths))
        if missing:
            logger.warning("media_delete_skipped", paths=missing)
        logger.info("media_deleted", count=len(paths) - len(missing))
