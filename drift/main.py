#!/usr/bin/env python3
"""
Drift - GPX track processing service
Turns a folder of GPX recordings into simplified activity geometry plus an
activity index, reprocessing only files that are new, changed or failed.
"""

import logging
import os
import re
import threading
import time

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

from drift.utils.app_config import (
    get_cors_origins,
    get_input_dir,
    get_manifest_path,
    get_output_dir,
    get_processor_options,
    get_watch_debounce_ms,
    get_watch_enabled,
    parse_env_bool,
)
from drift.utils.errors import DriftError
from drift.utils.manifest import (
    FILE_STATUSES,
    STATUS_ERROR,
    STATUS_PROCESSED,
    STATUS_PROCESSING,
    add_file_entry,
    get_files_by_status,
    summarize_manifest,
    update_file_status,
)
from drift.utils.manifest_store import calculate_checksum, load_manifest, save_manifest
from drift.utils.processor import make_file_processor, process_gpx_file
from drift.utils.sync import sync_files
from drift.utils.watcher import WatchController
from drift.utils.writers import INDEX_FILENAME, load_activity_index

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app, resources={r"/api/*": {"origins": get_cors_origins()}})

# Configuration
ALLOWED_EXTENSIONS = {'gpx'}
ACTIVITY_ID_PATTERN = re.compile(r"^[0-9a-f]{12}$")

app.config['INPUT_FOLDER'] = get_input_dir()
app.config['OUTPUT_FOLDER'] = get_output_dir()
app.config['MANIFEST_PATH'] = get_manifest_path()
app.config['MAX_CONTENT_LENGTH'] = 32 * 1024 * 1024  # 32MB max GPX size

# Sync requests and watch callbacks share one manifest file.
_manifest_lock = threading.Lock()


def allowed_file(filename):
    """Check if file has allowed extension."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def build_upload_path(directory, original_filename):
    """Sanitized path inside the input folder that does not overwrite an existing file."""
    sanitized = secure_filename(original_filename) or "activity.gpx"
    if not sanitized.lower().endswith(".gpx"):
        sanitized = f"{sanitized}.gpx"
    stem = sanitized[:-4]
    candidate = os.path.join(directory, sanitized)
    counter = 1
    while os.path.exists(candidate):
        candidate = os.path.join(directory, f"{stem}_{counter}.gpx")
        counter += 1
    return candidate


def activity_to_json(metadata):
    """JSON-friendly copy of activity metadata."""
    return {**metadata, 'date': metadata['date'].isoformat()}


def record_file_outcome(file_path, processor, output_dir):
    """
    Process one file and record the result in the persisted manifest.

    Used for uploads and watch events, which touch a single file outside a
    sync run.
    """
    checksum = calculate_checksum(file_path)
    manifest_path = app.config['MANIFEST_PATH']

    with _manifest_lock:
        manifest = load_manifest(manifest_path)
        manifest = add_file_entry(manifest, file_path, checksum)
        manifest = update_file_status(manifest, file_path, STATUS_PROCESSING)
        save_manifest(manifest, manifest_path)

    result = {'success': False, 'error': 'Interrupted'}
    try:
        result = processor(file_path, output_dir)
    except Exception as exc:
        result = {'success': False, 'error': str(exc)}
        raise
    finally:
        with _manifest_lock:
            manifest = load_manifest(manifest_path)
            if result.get('success'):
                manifest = update_file_status(
                    manifest, file_path, STATUS_PROCESSED, output_path=result.get('output_path')
                )
            else:
                manifest = update_file_status(
                    manifest, file_path, STATUS_ERROR, error=result.get('error') or 'Unknown error'
                )
            save_manifest(manifest, manifest_path)
    return result


@app.route('/api/upload', methods=['POST'])
def upload_gpx():
    """Store an uploaded GPX file in the input folder and process it."""
    try:
        if 'file' not in request.files:
            return jsonify({'error': 'No file provided'}), 400

        file = request.files['file']
        if file.filename == '':
            return jsonify({'error': 'No file selected'}), 400

        if not allowed_file(file.filename):
            return jsonify({'error': 'Invalid file type. Only GPX files allowed'}), 400

        input_dir = app.config['INPUT_FOLDER']
        output_dir = app.config['OUTPUT_FOLDER']
        os.makedirs(input_dir, exist_ok=True)
        filepath = os.path.abspath(build_upload_path(input_dir, file.filename))
        file.save(filepath)

        captured = {}

        def processor(path, out_dir):
            try:
                captured.update(process_gpx_file(path, out_dir, **get_processor_options()))
            except DriftError as exc:
                return {'success': False, 'error': str(exc)}
            return {
                'success': True,
                'output_path': os.path.join(out_dir, captured['metadata']['geometry_file']),
            }

        result = record_file_outcome(filepath, processor, output_dir)
        if not result['success']:
            return jsonify({'error': result['error'], 'filename': os.path.basename(filepath)}), 400

        return jsonify({
            'success': True,
            'filename': os.path.basename(filepath),
            'activity': activity_to_json(captured['metadata']),
            'warnings': captured['warnings'],
            'merge_info': captured['merge_info'],
        })

    except Exception as e:
        logger.exception("/api/upload failed")
        return jsonify({'error': str(e)}), 500


@app.route('/api/sync', methods=['POST'])
def sync():
    """Process new, changed and failed files in the input folder."""
    try:
        data = request.get_json(silent=True) or {}
        force = parse_env_bool(data.get('force'), default=False)
        input_dir = app.config['INPUT_FOLDER']
        output_dir = app.config['OUTPUT_FOLDER']
        manifest_path = app.config['MANIFEST_PATH']

        if not os.path.isdir(input_dir):
            return jsonify({'error': f'Input folder does not exist: {input_dir}'}), 400

        t_start = time.time()
        with _manifest_lock:
            manifest = load_manifest(manifest_path)
            result = sync_files(
                input_dir,
                output_dir,
                manifest,
                make_file_processor(**get_processor_options()),
                force=force,
                checkpoint=lambda m: save_manifest(m, manifest_path),
            )
            save_manifest(result['manifest'], manifest_path)
        elapsed = time.time() - t_start
        logger.info("Sync finished in %.3fs", elapsed)

        return jsonify({
            'success': True,
            'total': result['total'],
            'processed': result['processed'],
            'skipped': result['skipped'],
            'errors': result['errors'],
            'new_files': result['new_files'],
            'modified': result['modified'],
            'error_files': result['error_files'],
            'elapsed_seconds': round(elapsed, 4),
        })

    except Exception as e:
        logger.exception("/api/sync failed")
        return jsonify({'error': str(e)}), 500


@app.route('/api/manifest', methods=['GET'])
def manifest_status():
    """Report manifest entries grouped by status."""
    try:
        with _manifest_lock:
            manifest = load_manifest(app.config['MANIFEST_PATH'])
        files = {status: get_files_by_status(manifest, status) for status in FILE_STATUSES}
        errors = {
            path: entry.get('error')
            for path, entry in manifest['files'].items()
            if entry['status'] == STATUS_ERROR
        }
        return jsonify({
            'success': True,
            'pipeline_version': manifest['pipeline_version'],
            'updated_at': manifest['updated_at'].isoformat(),
            'summary': summarize_manifest(manifest),
            'files': files,
            'errors': errors,
        })

    except Exception as e:
        logger.exception("/api/manifest failed")
        return jsonify({'error': str(e)}), 500


@app.route('/api/activities', methods=['GET'])
def list_activities():
    """Return the activity index, newest first."""
    try:
        index = load_activity_index(app.config['OUTPUT_FOLDER'])
        return jsonify({
            'success': True,
            'generated_at': index['generated_at'].isoformat(),
            'activities': [activity_to_json(a) for a in index['activities']],
        })

    except Exception as e:
        logger.exception("/api/activities failed")
        return jsonify({'error': str(e)}), 500


@app.route('/api/activities/<activity_id>', methods=['GET'])
def get_activity(activity_id):
    """Download the geometry file of one activity."""
    try:
        if not ACTIVITY_ID_PATTERN.match(activity_id):
            return jsonify({'error': 'Invalid activity id'}), 400

        index = load_activity_index(app.config['OUTPUT_FOLDER'])
        activity = next((a for a in index['activities'] if a['id'] == activity_id), None)
        if activity is None:
            return jsonify({'error': 'Activity not found'}), 404

        filepath = os.path.join(app.config['OUTPUT_FOLDER'], activity['geometry_file'])
        if not os.path.exists(filepath):
            return jsonify({'error': f'Geometry file missing; rebuild {INDEX_FILENAME} or resync'}), 404

        return send_file(
            os.path.abspath(filepath),
            mimetype='application/geo+json',
            as_attachment=False,
            download_name=os.path.basename(filepath),
        )

    except Exception as e:
        logger.exception("/api/activities/%s failed", activity_id)
        return jsonify({'error': str(e)}), 500


@app.route('/api/health', methods=['GET'])
def health():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'service': 'Drift'
    })


def start_watch():
    """Start a watch controller over the input folder that records into the manifest."""
    processor = make_file_processor(**get_processor_options())

    def watch_processor(path, output_dir):
        return record_file_outcome(path, processor, output_dir)

    os.makedirs(app.config['INPUT_FOLDER'], exist_ok=True)
    controller = WatchController(
        app.config['INPUT_FOLDER'],
        app.config['OUTPUT_FOLDER'],
        watch_processor,
        debounce_ms=get_watch_debounce_ms(),
    )
    controller.on('ready', lambda: logger.info("Watcher ready"))
    controller.on('processed', lambda path, result: logger.info("Processed %s -> %s", path, result.get('output_path')))
    controller.on('error', lambda path, exc: logger.warning("Failed %s: %s", path, exc))
    return controller.start()


if __name__ == '__main__':
    debug_enabled = parse_env_bool(os.getenv('DRIFT_DEBUG'), default=False)
    logging.basicConfig(
        level=logging.DEBUG if debug_enabled else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    watcher = start_watch() if get_watch_enabled() else None
    try:
        # The reloader would start a second watcher in the child process.
        app.run(host='0.0.0.0', port=5002, debug=debug_enabled, use_reloader=False)
    finally:
        if watcher is not None:
            watcher.stop()
