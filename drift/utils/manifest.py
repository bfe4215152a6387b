"""Processing manifest: per-file checksum and status tracking.

The manifest is a plain dict owned by whoever drives a run (sync or watch).
Functions here never modify the manifest they are given; each transition
returns a new manifest dict so a caller can keep or discard either version.
Persistence lives in ``manifest_store``.
"""

from datetime import datetime, timezone

MANIFEST_VERSION = 1
DEFAULT_PIPELINE_VERSION = "1.0.0"

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_PROCESSED = "processed"
STATUS_ERROR = "error"

FILE_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_PROCESSED, STATUS_ERROR)


def _now():
    return datetime.now(timezone.utc)


def create_manifest(pipeline_version=DEFAULT_PIPELINE_VERSION):
    """Create a new, empty manifest."""
    now = _now()
    return {
        'version': MANIFEST_VERSION,
        'pipeline_version': pipeline_version,
        'created_at': now,
        'updated_at': now,
        'files': {},
    }


def _with_entry(manifest, file_path, entry, now):
    files = dict(manifest['files'])
    files[file_path] = entry
    return {**manifest, 'updated_at': now, 'files': files}


def add_file_entry(manifest, file_path, checksum):
    """
    Add a file or refresh its checksum.

    An unknown path is added as pending. A known path with the same checksum
    keeps its entry untouched. A changed checksum resets the entry to
    pending while keeping the original ``added_at``.

    Args:
        manifest: Current manifest
        file_path: Absolute path of the source file
        checksum: Content checksum of the file

    Returns:
        dict: Updated manifest
    """
    existing = manifest['files'].get(file_path)
    now = _now()

    if existing is None:
        entry = {'checksum': checksum, 'status': STATUS_PENDING, 'added_at': now}
    elif existing['checksum'] == checksum:
        entry = existing
    else:
        entry = {'checksum': checksum, 'status': STATUS_PENDING, 'added_at': existing['added_at']}

    return _with_entry(manifest, file_path, entry, now)


def update_file_status(manifest, file_path, status, error=None, output_path=None):
    """
    Move a file to a new processing status.

    Args:
        manifest: Current manifest
        file_path: Path already present in the manifest
        status: One of FILE_STATUSES
        error: Error message, kept only when status is 'error'
        output_path: Where the processed output was written, if known

    Returns:
        dict: Updated manifest

    Raises:
        KeyError: If the path is not in the manifest
        ValueError: If the status is unknown
    """
    if status not in FILE_STATUSES:
        raise ValueError(f"Unknown file status: {status}")

    existing = manifest['files'].get(file_path)
    if existing is None:
        raise KeyError(f"File not found in manifest: {file_path}")

    now = _now()
    entry = {**existing, 'status': status}
    if status == STATUS_PROCESSED:
        entry['processed_at'] = now
    if status == STATUS_ERROR and error:
        entry['error'] = error
    else:
        entry.pop('error', None)
    if output_path:
        entry['output_path'] = output_path

    return _with_entry(manifest, file_path, entry, now)


def get_file_entry(manifest, file_path):
    """Return the entry for a path, or None."""
    return manifest['files'].get(file_path)


def get_files_by_status(manifest, status):
    """List the paths whose entry has the given status."""
    return [path for path, entry in manifest['files'].items() if entry['status'] == status]


def needs_processing(manifest, file_path, checksum):
    """
    Decide whether a file has to go through the pipeline.

    True for unknown paths, changed checksums, and anything not yet
    successfully processed (pending, processing, error).
    """
    entry = manifest['files'].get(file_path)
    if entry is None:
        return True
    if entry['checksum'] != checksum:
        return True
    return entry['status'] != STATUS_PROCESSED


def summarize_manifest(manifest):
    """Count entries per status."""
    counts = {status: 0 for status in FILE_STATUSES}
    for entry in manifest['files'].values():
        counts[entry['status']] = counts.get(entry['status'], 0) + 1
    counts['total'] = len(manifest['files'])
    return counts
