"""
Archive assembly: deterministic entry naming and a streamed zip writer.

Entry names derive from the source URL:
    {host with dots -> _}_{path with / -> _, one leading _ trimmed, or "index"}[_{viewport}].{ext}
A name that cannot be computed, or that collides with an earlier entry,
falls back to `screenshot_<index>.<ext>` (with a counter suffix if even the
fallback is taken). A `metadata.json` entry is always appended last.

`stream_archive` writes into an unseekable sink and yields the compressed
bytes after every entry, so the archive is never held in memory as a whole.
Any write failure raises ArchiveWriteError and the stream stops before the
central directory is written; a consumer never sees an apparently complete
archive.
"""

from __future__ import annotations

import io
import json
import re
import zipfile
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Optional
from urllib.parse import urlsplit

from capture.errors import ArchiveWriteError
from capture.models import BatchResult
from shared.logging import get_logger

logger = get_logger(__name__)

METADATA_ENTRY_NAME = "metadata.json"
DEFAULT_COMPRESSION_LEVEL = 9

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class ArchiveItem:
    """One captured image to be packaged."""

    index: int
    image_format: str
    data: bytes = field(repr=False)
    source_url: Optional[str] = None
    viewport_name: Optional[str] = None


@dataclass(frozen=True)
class ArchiveEntry:
    name: str
    data: bytes = field(repr=False)


def _safe(component: str) -> str:
    return _UNSAFE_CHARS.sub("_", component)


def url_entry_name(source_url: str, image_format: str, viewport_name: Optional[str] = None) -> str:
    """
    Derive an entry name from a URL. Raises ValueError when no host can be
    read from `source_url`.
    """
    parts = urlsplit(source_url)
    host = parts.hostname
    if not host:
        raise ValueError(f"No host in URL: {source_url!r}")

    domain = host.replace(".", "_")
    path = parts.path.replace("/", "_")
    if path.startswith("_"):
        path = path[1:]
    if not path:
        path = "index"
    suffix = f"_{viewport_name}" if viewport_name else ""
    return _safe(f"{domain}_{path}{suffix}") + f".{_safe(image_format)}"


def fallback_entry_name(index: int, image_format: str) -> str:
    return f"screenshot_{index}.{_safe(image_format)}"


def build_entries(items: Iterable[ArchiveItem]) -> list[ArchiveEntry]:
    """Name every item, guaranteeing unique names within the archive."""
    used: set[str] = {METADATA_ENTRY_NAME}
    entries: list[ArchiveEntry] = []

    for item in items:
        name: Optional[str] = None
        if item.source_url:
            try:
                name = url_entry_name(item.source_url, item.image_format, item.viewport_name)
            except ValueError as e:
                logger.warning("archive.url_name_failed", url=item.source_url, error=str(e))
        if name is None or name in used:
            name = fallback_entry_name(item.index, item.image_format)
            counter = 1
            while name in used:
                counter += 1
                name = f"screenshot_{item.index}_{counter}.{_safe(item.image_format)}"
        used.add(name)
        entries.append(ArchiveEntry(name=name, data=item.data))

    return entries


def items_from_batch(batch: BatchResult) -> list[ArchiveItem]:
    """Successful captures of a batch, as archive items (failures are skipped)."""
    items: list[ArchiveItem] = []
    for item in batch.successes():
        result = item.result
        items.append(
            ArchiveItem(
                index=item.index,
                image_format=result.image_format,
                data=result.image_bytes,
                source_url=item.source_url,
                viewport_name=item.viewport.name if item.viewport else None,
            )
        )
    return items


class _ChunkSink(io.RawIOBase):
    """Write-only, unseekable buffer drained by the streaming generator."""

    def __init__(self) -> None:
        super().__init__()
        self._chunks: list[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        data = bytes(b)
        self._chunks.append(data)
        return len(data)

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def stream_archive(
    items: Iterable[ArchiveItem],
    metadata: Mapping[str, Any],
    *,
    compression_level: int = DEFAULT_COMPRESSION_LEVEL,
    sink: Optional[io.RawIOBase] = None,
) -> Iterator[bytes]:
    """
    Yield a zip archive of `items` plus `metadata.json`, chunk by chunk.

    Raises ArchiveWriteError if any entry (or the metadata record) cannot be
    written. `sink` is only overridden in tests.
    """
    entries = build_entries(items)
    buffer = sink if sink is not None else _ChunkSink()
    written = 0

    def _drain() -> bytes:
        drain = getattr(buffer, "drain", None)
        return drain() if drain is not None else b""

    try:
        with zipfile.ZipFile(
            buffer,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
        ) as archive:
            for entry in entries:
                archive.writestr(entry.name, entry.data)
                written += 1
                chunk = _drain()
                if chunk:
                    yield chunk
            archive.writestr(
                METADATA_ENTRY_NAME,
                json.dumps(dict(metadata), indent=2, default=str),
            )
        chunk = _drain()
        if chunk:
            yield chunk
    except (OSError, ValueError, TypeError, zipfile.LargeZipFile) as e:
        logger.error(
            "archive.write_failed",
            entries_written=written,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise ArchiveWriteError(f"Archive write failed: {e}") from e

    logger.info("archive.completed", entries=written + 1)
