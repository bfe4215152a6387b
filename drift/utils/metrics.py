"""Activity metrics calculated from a parsed track."""

import math

from .geo import haversine_distance

# Minimum elevation change in meters that counts toward gain/loss.
DEFAULT_ELEVATION_THRESHOLD = 2

# Gaps between samples at or above this many seconds are pauses.
PAUSE_THRESHOLD_SECONDS = 120


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def calculate_distance(track):
    """Total distance in km, summed within each segment (segments are not bridged)."""
    total = 0.0
    for segment in track['segments']:
        points = segment['points']
        for prev, curr in zip(points, points[1:]):
            total += haversine_distance(prev['lat'], prev['lon'], curr['lat'], curr['lon'])
    return total


def calculate_duration(points):
    """Seconds between the first and last timestamped points."""
    times = [p['time'] for p in points if p.get('time') is not None]
    if len(times) < 2:
        return 0
    return math.floor((times[-1] - times[0]).total_seconds())


def calculate_moving_time(points):
    """Sum of sample intervals, skipping intervals long enough to be a pause."""
    moving = 0.0
    for prev, curr in zip(points, points[1:]):
        if prev.get('time') is None or curr.get('time') is None:
            continue
        delta = (curr['time'] - prev['time']).total_seconds()
        if delta < PAUSE_THRESHOLD_SECONDS:
            moving += delta
    return math.floor(moving)


def calculate_elevation_stats(points, threshold=DEFAULT_ELEVATION_THRESHOLD):
    """
    Elevation gain, loss, max and min with jitter suppression.

    Changes are measured against the last elevation that was counted, and
    only a change of at least ``threshold`` meters is accumulated. A track
    whose elevations are all zero carries no elevation data and reports
    zeros throughout.

    Args:
        points: List of point dicts
        threshold: Noise threshold in meters

    Returns:
        dict: {'gain', 'loss', 'max', 'min'} rounded to whole meters
    """
    if not points:
        return {'gain': 0, 'loss': 0, 'max': 0, 'min': 0}

    elevations = [p['elevation'] for p in points]
    max_ele = max(elevations)
    min_ele = min(elevations)

    if max_ele == 0 and min_ele == 0:
        return {'gain': 0, 'loss': 0, 'max': 0, 'min': 0}

    gain = 0.0
    loss = 0.0
    reference = elevations[0]
    for ele in elevations[1:]:
        diff = ele - reference
        if abs(diff) >= threshold:
            if diff > 0:
                gain += diff
            else:
                loss -= diff
            reference = ele

    return {
        'gain': _round_half_up(gain),
        'loss': _round_half_up(loss),
        'max': _round_half_up(max_ele),
        'min': _round_half_up(min_ele),
    }


def calculate_bounds(points):
    """Bounding box of all points; all zeros for an empty list."""
    if not points:
        return {'north': 0, 'south': 0, 'east': 0, 'west': 0}

    lats = [p['lat'] for p in points]
    lons = [p['lon'] for p in points]
    return {
        'north': max(lats),
        'south': min(lats),
        'east': max(lons),
        'west': min(lons),
    }


def calculate_metadata(track, elevation_threshold=DEFAULT_ELEVATION_THRESHOLD):
    """
    Calculate distance, timing, elevation and bounds for a track.

    ``point_count['simplified']`` starts out equal to the original count;
    callers that simplify the track overwrite it.

    Args:
        track: Parsed track dict
        elevation_threshold: Elevation noise threshold in meters

    Returns:
        dict: Calculated metadata
    """
    all_points = [p for segment in track['segments'] for p in segment['points']]

    return {
        'distance': calculate_distance(track),
        'duration': calculate_duration(all_points),
        'moving_time': calculate_moving_time(all_points),
        'elevation': calculate_elevation_stats(all_points, elevation_threshold),
        'bounds': calculate_bounds(all_points),
        'segments': len(track['segments']),
        'point_count': {
            'original': len(all_points),
            'simplified': len(all_points),
        },
    }
