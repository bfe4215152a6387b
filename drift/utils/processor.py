"""Per-file GPX processing pipeline.

parse -> merge segments -> metrics -> simplify -> encode -> index
"""

import hashlib
import logging
import os
from datetime import datetime, timezone

from .errors import DriftError
from .gpx_parser import parse_gpx_file
from .metrics import DEFAULT_ELEVATION_THRESHOLD, calculate_metadata
from .segments import DEFAULT_MAX_DISTANCE_GAP_KM, DEFAULT_MAX_TIME_GAP_SECONDS, process_segments
from .simplify import simplify_3d
from .writers import encode_polyline, update_activity_index, write_geojson_activity

logger = logging.getLogger(__name__)

# Roughly 11 m at the equator.
DEFAULT_SIMPLIFY_TOLERANCE = 0.0001

ACTIVITY_ID_LENGTH = 12

SPORT_TYPES = ("cycling", "running", "hiking", "walking", "skiing", "swimming", "other")

_SPORT_ALIASES = {
    "running": "running",
    "run": "running",
    "cycling": "cycling",
    "biking": "cycling",
    "ride": "cycling",
    "hiking": "hiking",
    "hike": "hiking",
    "walking": "walking",
    "walk": "walking",
    "skiing": "skiing",
    "ski": "skiing",
    "swimming": "swimming",
    "swim": "swimming",
}


def generate_activity_id(file_path):
    """Stable short id: the first 12 hex chars of SHA-256 over the path."""
    return hashlib.sha256(str(file_path).encode("utf-8")).hexdigest()[:ACTIVITY_ID_LENGTH]


def map_sport_type(gpx_type):
    """Map a free-form GPX <type> to one of SPORT_TYPES."""
    if not gpx_type:
        return "other"
    return _SPORT_ALIASES.get(gpx_type.strip().lower(), "other")


def _start_date(points):
    for point in points:
        if point.get('time') is not None:
            return point['time']
    return datetime.now(timezone.utc)


def process_gpx_file(input_path, output_dir, simplify_tolerance=DEFAULT_SIMPLIFY_TOLERANCE,
                     elevation_threshold=DEFAULT_ELEVATION_THRESHOLD, merge_segments=True,
                     max_time_gap_seconds=DEFAULT_MAX_TIME_GAP_SECONDS,
                     max_distance_gap_km=DEFAULT_MAX_DISTANCE_GAP_KM, encoder=None):
    """
    Run one GPX file through the pipeline and write its outputs.

    Args:
        input_path: Path to the GPX file
        output_dir: Output base directory
        simplify_tolerance: Simplification tolerance in degrees
        elevation_threshold: Elevation noise threshold in meters
        merge_segments: Join segments separated by short gaps
        max_time_gap_seconds: Merge threshold for time gaps
        max_distance_gap_km: Merge threshold for distance gaps
        encoder: Callable (simplified_segments, metadata, output_dir) -> relative
            output path. Defaults to the GeoJSON writer.

    Returns:
        dict: {'metadata', 'warnings', 'gaps', 'merge_info'}
    """
    input_path = os.path.abspath(input_path)
    parsed = parse_gpx_file(input_path)
    track = parsed['track']

    gaps = []
    merge_info = None
    if merge_segments:
        merged = process_segments(
            track['segments'],
            max_time_gap_seconds=max_time_gap_seconds,
            max_distance_gap_km=max_distance_gap_km,
        )
        track = {**track, 'segments': merged['segments']}
        gaps = merged['gaps']
        merge_info = merged['merge_info']
        if merge_info and merge_info['merged_count']:
            logger.info("%s: merged %d of %d segments", input_path,
                        merge_info['merged_count'], merge_info['original_count'])

    calculated = calculate_metadata(track, elevation_threshold=elevation_threshold)

    simplified_segments = [
        simplify_3d(segment['points'], simplify_tolerance)
        for segment in track['segments']
    ]
    simplified_points = [p for points in simplified_segments for p in points]
    all_points = [p for segment in track['segments'] for p in segment['points']]

    activity_id = generate_activity_id(input_path)
    metadata = {
        'id': activity_id,
        'source_file': input_path,
        'name': track['name'],
        'sport': map_sport_type(track.get('type')),
        'date': _start_date(all_points),
        'distance': calculated['distance'],
        'duration': calculated['duration'],
        'moving_time': calculated['moving_time'],
        'elevation': calculated['elevation'],
        'bounds': calculated['bounds'],
        'segments': calculated['segments'],
        'point_count': {
            'original': calculated['point_count']['original'],
            'simplified': len(simplified_points),
        },
        'overview_polyline': encode_polyline(simplified_points),
    }

    encode = encoder or write_geojson_activity
    metadata['geometry_file'] = encode(simplified_segments, metadata, output_dir)
    update_activity_index(output_dir, metadata)

    return {
        'metadata': metadata,
        'warnings': parsed['warnings'],
        'gaps': gaps,
        'merge_info': merge_info,
    }


def make_file_processor(**options):
    """
    Build a processor callable for sync and watch.

    The callable takes (path, output_dir) and returns {'success',
    'output_path', 'error'}. Pipeline errors become a failed result; any
    other exception propagates to the driver.
    """
    def process(path, output_dir):
        try:
            processed = process_gpx_file(path, output_dir, **options)
        except DriftError as exc:
            return {'success': False, 'error': str(exc)}
        return {
            'success': True,
            'output_path': os.path.join(output_dir, processed['metadata']['geometry_file']),
        }

    return process
