"""Index persistence for reposeek.

Serializes the chunk corpus with its embeddings to a single JSON file so that
restarts only re-embed files that changed. Embeddings are stored as base64 of
little-endian float32 bytes; plain number arrays are accepted on load.

File layout::

    {"version": 1,
     "meta": {"chunkSize": 800, "chunkOverlap": 120, "modelName": "...",
              "savedAt": "...", "embEncoding": "f32-base64"},
     "docs": [{"id": "0", "path": "src/a.py", "chunk": 0, "text": "...",
               "fileSize": 1234, "lineCount": 40, "emb": "AACAPw..."}]}
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import numpy as np

from reposeek.types import Chunk

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

__all__ = [
    "EMB_ENCODING",
    "STORE_VERSION",
    "decode_embedding",
    "encode_embedding",
    "load_index",
    "save_index",
]

logger = logging.getLogger(__name__)

STORE_VERSION = 1
EMB_ENCODING = "f32-base64"

_F32_LE = np.dtype("<f4")


def encode_embedding(embedding: Sequence[float] | None) -> str:
    """Encode a vector as base64 little-endian float32; ``""`` when absent."""
    if embedding is None:
        return ""
    return base64.b64encode(np.asarray(embedding, dtype=_F32_LE).tobytes()).decode("ascii")


def decode_embedding(raw: object) -> tuple[float, ...] | None:
    """Decode a stored embedding.

    Accepts a list of numbers or a base64 float32 string. Returns ``None``
    for anything else, including empty or misaligned buffers.
    """
    if isinstance(raw, list):
        values: list[float] = []
        for n in raw:
            try:
                values.append(float(n))
            except (TypeError, ValueError):
                values.append(0.0)
        return tuple(values) if values else None

    if isinstance(raw, str) and raw:
        try:
            buf = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError):
            return None
        if not buf or len(buf) % 4 != 0:
            return None
        return tuple(float(v) for v in np.frombuffer(buf, dtype=_F32_LE))

    return None


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _chunk_to_dict(chunk: Chunk) -> dict[str, object]:
    return {
        "id": chunk.id,
        "path": chunk.path,
        "chunk": chunk.chunk_index,
        "text": chunk.text,
        "fileSize": chunk.file_size,
        "lineCount": chunk.line_count,
        "emb": encode_embedding(chunk.embedding),
    }


def _chunk_from_dict(data: object) -> Chunk | None:
    """Validate one stored record; malformed records yield ``None``."""
    if not isinstance(data, dict):
        return None

    chunk_id = data.get("id")
    path = data.get("path")
    index = data.get("chunk")
    text = data.get("text")
    file_size = data.get("fileSize")
    if not (
        isinstance(chunk_id, str)
        and isinstance(path, str)
        and _is_number(index)
        and isinstance(text, str)
        and _is_number(file_size)
    ):
        return None

    embedding = decode_embedding(data.get("emb"))
    if embedding is None:
        return None

    line_count = data.get("lineCount")
    return Chunk(
        id=chunk_id,
        path=path,
        chunk_index=int(index),  # type: ignore[arg-type]
        text=text,
        file_size=int(file_size),  # type: ignore[arg-type]
        line_count=int(line_count) if _is_number(line_count) and line_count > 0 else -1,  # type: ignore[operator]
        embedding=embedding,
    )


def load_index(
    store_path: Path | None,
    chunk_size: int,
    chunk_overlap: int,
    model_name: str,
) -> list[Chunk] | None:
    """Load a persisted corpus if it exists and matches the current settings.

    Returns:
        The stored chunks, or ``None`` when the caller must rebuild from
        scratch (no path, no file, unreadable JSON, wrong shape, or
        chunk/model settings that differ from the current ones).
    """
    if store_path is None or not store_path.exists():
        return None

    try:
        raw = store_path.read_text(encoding="utf-8")
        data = json.loads(raw)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to load index store at %s: %s", store_path, e)
        return None

    if not isinstance(data, dict) or not isinstance(data.get("docs"), list):
        logger.warning("Index store at %s has an unexpected shape; rebuilding", store_path)
        return None

    meta = data.get("meta")
    if not isinstance(meta, dict):
        meta = {}
    stored_model = meta.get("modelName")
    if (
        meta.get("chunkSize") != chunk_size
        or meta.get("chunkOverlap") != chunk_overlap
        or (stored_model and stored_model != model_name)
    ):
        logger.info(
            "Stored index incompatible (model/chunk params differ). Performing cold rebuild."
        )
        return None

    chunks: list[Chunk] = []
    dropped = 0
    for record in data["docs"]:
        chunk = _chunk_from_dict(record)
        if chunk is None:
            dropped += 1
            continue
        chunks.append(chunk)

    if dropped:
        logger.debug("Dropped %d malformed records from %s", dropped, store_path)
    logger.info("Loaded persisted index: %d chunks from %s", len(chunks), store_path)
    return chunks


def save_index(
    store_path: Path | None,
    chunks: Sequence[Chunk],
    chunk_size: int,
    chunk_overlap: int,
    model_name: str,
) -> bool:
    """Persist the corpus. Failures are logged, never raised.

    Returns:
        ``True`` if the file was written.
    """
    if store_path is None:
        return False

    data = {
        "version": STORE_VERSION,
        "meta": {
            "chunkSize": chunk_size,
            "chunkOverlap": chunk_overlap,
            "modelName": model_name,
            "savedAt": datetime.now(UTC).isoformat(),
            "embEncoding": EMB_ENCODING,
        },
        "docs": [_chunk_to_dict(c) for c in chunks],
    }
    try:
        store_path.parent.mkdir(parents=True, exist_ok=True)
        store_path.write_text(json.dumps(data), encoding="utf-8")
    except (OSError, TypeError, ValueError) as e:
        logger.error("Failed to save index store to %s: %s", store_path, e)
        return False

    logger.info("Persisted index (%d chunks) to %s", len(chunks), store_path)
    return True
