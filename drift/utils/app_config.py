"""Application configuration helpers."""

import os

from .metrics import DEFAULT_ELEVATION_THRESHOLD
from .processor import DEFAULT_SIMPLIFY_TOLERANCE
from .segments import DEFAULT_MAX_DISTANCE_GAP_KM, DEFAULT_MAX_TIME_GAP_SECONDS
from .watcher import DEFAULT_DEBOUNCE_MS

DEFAULT_INPUT_DIR = "/app/gpx"
DEFAULT_OUTPUT_DIR = "/app/output"
MANIFEST_FILENAME = "manifest.json"


def parse_env_bool(value, default=False):
    """Parse a boolean-like environment value with a fallback default."""
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_env_int(name, default):
    """Parse an integer environment value with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def parse_env_float(name, default):
    """Parse a float environment value with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def get_cors_origins():
    """
    Return CORS origins from env, or localhost-only defaults.

    `DRIFT_CORS_ORIGINS` supports a comma-separated list.
    """
    raw = os.getenv('DRIFT_CORS_ORIGINS', '')
    if raw.strip():
        return [origin.strip() for origin in raw.split(',') if origin.strip()]
    return [r"^http://localhost(:\d+)?$", r"^http://127\.0\.0\.1(:\d+)?$"]


def get_input_dir():
    return os.getenv("DRIFT_INPUT_DIR", "").strip() or DEFAULT_INPUT_DIR


def get_output_dir():
    return os.getenv("DRIFT_OUTPUT_DIR", "").strip() or DEFAULT_OUTPUT_DIR


def get_manifest_path():
    """Manifest location; defaults to manifest.json inside the output directory."""
    raw = os.getenv("DRIFT_MANIFEST_PATH", "").strip()
    if raw:
        return raw
    return os.path.join(get_output_dir(), MANIFEST_FILENAME)


def get_simplify_tolerance():
    return max(0.0, parse_env_float("DRIFT_SIMPLIFY_TOLERANCE", DEFAULT_SIMPLIFY_TOLERANCE))


def get_elevation_threshold():
    return max(0.0, parse_env_float("DRIFT_ELEVATION_THRESHOLD", DEFAULT_ELEVATION_THRESHOLD))


def get_merge_segments():
    return parse_env_bool(os.getenv("DRIFT_MERGE_SEGMENTS"), default=True)


def get_max_time_gap_seconds():
    return max(0, parse_env_int("DRIFT_MAX_TIME_GAP_SECONDS", DEFAULT_MAX_TIME_GAP_SECONDS))


def get_max_distance_gap_km():
    return max(0.0, parse_env_float("DRIFT_MAX_DISTANCE_GAP_KM", DEFAULT_MAX_DISTANCE_GAP_KM))


def get_watch_enabled():
    return parse_env_bool(os.getenv("DRIFT_WATCH"), default=False)


def get_watch_debounce_ms():
    return max(0, parse_env_int("DRIFT_WATCH_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS))


def get_processor_options():
    """Keyword arguments for process_gpx_file, read from the environment."""
    return {
        'simplify_tolerance': get_simplify_tolerance(),
        'elevation_threshold': get_elevation_threshold(),
        'merge_segments': get_merge_segments(),
        'max_time_gap_seconds': get_max_time_gap_seconds(),
        'max_distance_gap_km': get_max_distance_gap_km(),
    }
