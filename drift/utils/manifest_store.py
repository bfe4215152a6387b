"""JSON persistence for the processing manifest, plus file checksums."""

import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime

from .manifest import create_manifest

logger = logging.getLogger(__name__)

CHECKSUM_CHUNK_SIZE = 64 * 1024

_ENTRY_TIME_FIELDS = ("added_at", "processed_at")


def calculate_checksum(file_path):
    """SHA-256 hex digest of a file's bytes."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(CHECKSUM_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _serialize_entry(entry):
    data = {"checksum": entry["checksum"], "status": entry["status"]}
    for field in _ENTRY_TIME_FIELDS:
        if entry.get(field) is not None:
            data[field] = entry[field].isoformat()
    for field in ("error", "output_path"):
        if entry.get(field):
            data[field] = entry[field]
    return data


def _deserialize_entry(data):
    entry = {"checksum": data["checksum"], "status": data["status"]}
    for field in _ENTRY_TIME_FIELDS:
        if data.get(field):
            entry[field] = datetime.fromisoformat(data[field])
    for field in ("error", "output_path"):
        if data.get(field):
            entry[field] = data[field]
    return entry


def serialize_manifest(manifest):
    """Convert a manifest into a JSON-compatible dict."""
    return {
        "version": manifest["version"],
        "pipeline_version": manifest["pipeline_version"],
        "created_at": manifest["created_at"].isoformat(),
        "updated_at": manifest["updated_at"].isoformat(),
        "files": {path: _serialize_entry(entry) for path, entry in manifest["files"].items()},
    }


def deserialize_manifest(data):
    """Inverse of serialize_manifest."""
    return {
        "version": data["version"],
        "pipeline_version": data["pipeline_version"],
        "created_at": datetime.fromisoformat(data["created_at"]),
        "updated_at": datetime.fromisoformat(data["updated_at"]),
        "files": {path: _deserialize_entry(entry) for path, entry in data.get("files", {}).items()},
    }


def save_manifest(manifest, path):
    """
    Write the manifest as JSON.

    The file is written to a temporary sibling and moved into place so an
    interrupted write never leaves a truncated manifest behind.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".manifest_", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(serialize_manifest(manifest), f, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    return path


def load_manifest(path):
    """
    Load a manifest from JSON.

    A missing file yields a fresh, empty manifest. Unreadable JSON raises.
    """
    if not os.path.exists(path):
        logger.info("No manifest at %s, starting a new one", path)
        return create_manifest()

    with open(path, "r", encoding="utf-8") as f:
        return deserialize_manifest(json.load(f))
