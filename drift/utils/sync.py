"""Incremental directory sync driven by the processing manifest."""

import logging
import os

from .manifest import (
    STATUS_ERROR,
    STATUS_PROCESSED,
    STATUS_PROCESSING,
    add_file_entry,
    get_file_entry,
    needs_processing,
    update_file_status,
)
from .manifest_store import calculate_checksum

logger = logging.getLogger(__name__)

GPX_EXTENSION = ".gpx"


def has_extension(path, extension=GPX_EXTENSION):
    """Case-insensitive extension check."""
    return str(path).lower().endswith(extension.lower())


def scan_directory(directory, extension=GPX_EXTENSION):
    """
    Recursively find files with the given extension.

    Args:
        directory: Directory to scan
        extension: File extension, matched case-insensitively

    Returns:
        list: Sorted absolute file paths
    """
    root = os.path.abspath(directory)
    found = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            if has_extension(name, extension):
                found.append(os.path.join(dirpath, name))
    return sorted(found)


def sync_files(input_dir, output_dir, manifest, processor, force=False, checkpoint=None):
    """
    Process new, changed and previously failed files under ``input_dir``.

    Each file is checksummed and checked against the manifest. Files that
    need work are marked processing, handed to ``processor(path,
    output_dir)``, and marked processed or error depending on the outcome.
    A processor exception is recorded the same way as a returned
    ``{'success': False}``.

    Args:
        input_dir: Directory holding source files
        output_dir: Directory passed through to the processor
        manifest: Manifest from the previous run
        processor: Callable returning {'success', 'output_path', 'error'}
        force: Reprocess files even when unchanged and already processed
        checkpoint: Optional callable receiving the manifest after each file

    Returns:
        dict: Counts, per-file errors and the updated manifest
    """
    files = scan_directory(input_dir)
    result = {
        'total': len(files),
        'processed': 0,
        'skipped': 0,
        'errors': 0,
        'new_files': 0,
        'modified': 0,
        'error_files': [],
        'manifest': manifest,
    }

    for file_path in files:
        checksum = calculate_checksum(file_path)
        existing = get_file_entry(manifest, file_path)
        is_new = existing is None
        is_modified = existing is not None and existing['checksum'] != checksum

        if not force and not needs_processing(manifest, file_path, checksum):
            result['skipped'] += 1
            continue

        manifest = add_file_entry(manifest, file_path, checksum)
        manifest = update_file_status(manifest, file_path, STATUS_PROCESSING)

        try:
            outcome = processor(file_path, output_dir)
        except Exception as exc:
            outcome = {'success': False, 'error': str(exc) or exc.__class__.__name__}

        if outcome.get('success'):
            manifest = update_file_status(
                manifest, file_path, STATUS_PROCESSED, output_path=outcome.get('output_path')
            )
            result['processed'] += 1
            if is_new:
                result['new_files'] += 1
            elif is_modified:
                result['modified'] += 1
        else:
            error = outcome.get('error') or 'Unknown error'
            manifest = update_file_status(manifest, file_path, STATUS_ERROR, error=error)
            result['errors'] += 1
            result['error_files'].append({'path': file_path, 'error': error})
            logger.warning("Failed to process %s: %s", file_path, error)

        if checkpoint is not None:
            checkpoint(manifest)

    logger.info(
        "Sync of %s: %d files, %d processed, %d skipped, %d errors",
        input_dir, result['total'], result['processed'], result['skipped'], result['errors'],
    )
    result['manifest'] = manifest
    return result
