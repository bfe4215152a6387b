"""Segment gap analysis and merging.

A recording device starts a new <trkseg> whenever it loses the GPS fix or
the user pauses. Short interruptions are still one activity, so adjacent
segments whose gap is small in both time and distance are joined back
together before metrics and simplification run.
"""

import math

from .geo import haversine_distance

DEFAULT_MAX_TIME_GAP_SECONDS = 300
DEFAULT_MAX_DISTANCE_GAP_KM = 0.5


def analyze_gap(seg1, seg2, max_time_gap_seconds=DEFAULT_MAX_TIME_GAP_SECONDS,
                max_distance_gap_km=DEFAULT_MAX_DISTANCE_GAP_KM):
    """
    Analyze the gap between the end of one segment and the start of the next.

    Args:
        seg1: Earlier segment ({'points': [...]})
        seg2: Later segment
        max_time_gap_seconds: Largest time gap that still merges
        max_distance_gap_km: Largest distance gap that still merges

    Returns:
        dict: {'time_gap_seconds', 'distance_gap_km', 'should_merge'}
    """
    if not seg1['points'] or not seg2['points']:
        return {
            'time_gap_seconds': 0,
            'distance_gap_km': 0.0,
            'should_merge': True,
        }

    last_point = seg1['points'][-1]
    first_point = seg2['points'][0]

    time_gap_seconds = 0
    if last_point.get('time') is not None and first_point.get('time') is not None:
        delta = (first_point['time'] - last_point['time']).total_seconds()
        # Out-of-order segments clamp to zero.
        time_gap_seconds = max(0, math.floor(delta))

    distance_gap_km = haversine_distance(
        last_point['lat'], last_point['lon'],
        first_point['lat'], first_point['lon'],
    )

    time_ok = time_gap_seconds == 0 or time_gap_seconds <= max_time_gap_seconds
    distance_ok = distance_gap_km <= max_distance_gap_km

    return {
        'time_gap_seconds': time_gap_seconds,
        'distance_gap_km': distance_gap_km,
        'should_merge': time_ok and distance_ok,
    }


def process_segments(segments, max_time_gap_seconds=DEFAULT_MAX_TIME_GAP_SECONDS,
                     max_distance_gap_km=DEFAULT_MAX_DISTANCE_GAP_KM):
    """
    Merge adjacent segments whose gap is within the thresholds.

    Args:
        segments: Ordered list of segments
        max_time_gap_seconds: Largest time gap that still merges
        max_distance_gap_km: Largest distance gap that still merges

    Returns:
        dict: {'segments': merged list, 'gaps': one analysis per original
        adjacency, 'merge_info': counts or None for 0/1 segment input}
    """
    if len(segments) <= 1:
        return {
            'segments': list(segments),
            'gaps': [],
            'merge_info': None,
        }

    gaps = []
    merged = []
    current = {'points': list(segments[0]['points'])}

    for next_segment in segments[1:]:
        gap = analyze_gap(
            current,
            next_segment,
            max_time_gap_seconds=max_time_gap_seconds,
            max_distance_gap_km=max_distance_gap_km,
        )
        gaps.append(gap)

        if gap['should_merge']:
            current['points'].extend(next_segment['points'])
        else:
            merged.append(current)
            current = {'points': list(next_segment['points'])}

    merged.append(current)

    return {
        'segments': merged,
        'gaps': gaps,
        'merge_info': {
            'original_count': len(segments),
            'result_count': len(merged),
            'merged_count': len(segments) - len(merged),
        },
    }
