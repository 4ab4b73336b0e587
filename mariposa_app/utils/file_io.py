"""Filesystem primitives shared by the settings, storage and log modules.

Streamlit reruns page scripts concurrently for every open browser tab, so
small JSON documents (settings, the token store) and the JSONL log are written
with a temp-file-and-rename swap. A crash mid-write never leaves a truncated
file behind.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
import contextlib
import io
import json
import os
import tempfile

__all__ = ["atomic_write_text", "ensure_directory", "read_json_file", "tail_lines"]


def ensure_directory(path: Path | str) -> Path:
    """Ensure that ``path`` exists and return it as a :class:`Path`."""

    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def atomic_write_text(
    path: Path | str,
    text: str,
    *,
    encoding: str = "utf-8",
    preserve_permissions: bool = True,
) -> None:
    """Write ``text`` to ``path`` by swapping in a fully written temp file.

    When ``preserve_permissions`` is set, the mode of an existing destination
    is copied to the replacement so hardened files stay hardened.
    """

    destination = Path(path)
    ensure_directory(destination.parent)

    existing_mode: int | None = None
    if preserve_permissions and destination.exists():
        with contextlib.suppress(FileNotFoundError):
            existing_mode = destination.stat().st_mode

    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding=encoding, delete=False, dir=destination.parent
        ) as handle:
            handle.write(text)
            handle.flush()
            tmp_name = handle.name

        if existing_mode is not None:
            with contextlib.suppress(FileNotFoundError):
                os.chmod(tmp_name, existing_mode)

        os.replace(tmp_name, destination)
    except Exception:
        if tmp_name:
            with contextlib.suppress(FileNotFoundError):
                os.remove(tmp_name)
        raise


def read_json_file(path: Path | str) -> Any:
    """Return the decoded JSON document at ``path`` or ``None`` when absent.

    Decoding errors propagate so callers can decide whether a corrupt file is
    fatal (settings) or recoverable (storage).
    """

    target = Path(path)
    if not target.exists():
        return None
    text = target.read_text(encoding="utf-8")
    if not text.strip():
        return None
    return json.loads(text)


def tail_lines(
    path: Path | str,
    limit: int | None = None,
    *,
    encoding: str = "utf-8",
    errors: str = "replace",
    drop_blank: bool = False,
) -> list[str]:
    """Return the last ``limit`` lines of ``path`` without reading it whole."""

    target = Path(path)
    if not target.exists():
        return []
    if limit is not None and limit <= 0:
        return []

    if limit is None:
        with target.open("r", encoding=encoding, errors=errors) as handle:
            lines = list(handle)
    else:
        with target.open("rb") as handle:
            handle.seek(0, os.SEEK_END)
            position = handle.tell()
            if position == 0:
                return []

            buffer = bytearray()
            newline_target = limit + 1
            newline_count = 0
            while position > 0 and newline_count <= newline_target:
                read_size = min(8192, position)
                position -= read_size
                handle.seek(position)
                chunk = handle.read(read_size)
                buffer[:0] = chunk
                newline_count += chunk.count(b"\n")

        with contextlib.closing(
            io.TextIOWrapper(io.BytesIO(bytes(buffer)), encoding=encoding, errors=errors)
        ) as wrapper:
            lines = wrapper.read().splitlines(keepends=True)[-limit:]

    result = [line.rstrip("\r\n") for line in lines]
    if drop_blank:
        result = [line for line in result if line.strip()]
    return result
