"""Output writers: overview polyline, GeoJSON activity files and the activity index."""

import json
import logging
import os
import threading
from datetime import datetime, timezone

import geojson
import polyline

logger = logging.getLogger(__name__)

INDEX_VERSION = 1
INDEX_FILENAME = "index.json"
ACTIVITIES_DIRNAME = "activities"

DEFAULT_POLYLINE_PRECISION = 5

_index_lock = threading.Lock()


def encode_polyline(points, precision=DEFAULT_POLYLINE_PRECISION):
    """Encode points as a Google encoded polyline over (lat, lon)."""
    return polyline.encode([(p['lat'], p['lon']) for p in points], precision=precision)


def decode_polyline(encoded, precision=DEFAULT_POLYLINE_PRECISION):
    """Decode an encoded polyline into a list of (lat, lon) tuples."""
    return polyline.decode(encoded, precision=precision)


def flatten_properties(metadata, tags=None):
    """
    Flatten activity metadata into primitive properties for geometry files.

    Args:
        metadata: Activity metadata dict
        tags: Optional list of tag names

    Returns:
        dict: Property name to str/int/float value
    """
    date = metadata.get('date')
    properties = {
        'id': metadata['id'],
        'sourceFile': metadata.get('source_file', ''),
        'name': metadata['name'],
        'sport': metadata['sport'],
        'date': date.isoformat() if isinstance(date, datetime) else date,
        'distance': metadata['distance'],
        'duration': metadata['duration'],
        'movingTime': metadata['moving_time'],
        'elevationGain': metadata['elevation']['gain'],
        'elevationLoss': metadata['elevation']['loss'],
        'elevationMax': metadata['elevation']['max'],
        'elevationMin': metadata['elevation']['min'],
        'boundsNorth': metadata['bounds']['north'],
        'boundsSouth': metadata['bounds']['south'],
        'boundsEast': metadata['bounds']['east'],
        'boundsWest': metadata['bounds']['west'],
        'segments': metadata['segments'],
        'pointCountOriginal': metadata['point_count']['original'],
        'pointCountSimplified': metadata['point_count']['simplified'],
    }
    if tags:
        properties['tags'] = ",".join(tags)
    if metadata.get('overview_polyline'):
        properties['overviewPolyline'] = metadata['overview_polyline']
    return properties


def write_geojson_activity(segments, metadata, output_dir):
    """
    Write simplified segments as a GeoJSON MultiLineString feature.

    Args:
        segments: List of point lists, one per segment
        metadata: Activity metadata (must include 'id')
        output_dir: Output base directory

    Returns:
        str: Path of the written file, relative to output_dir
    """
    coordinates = [
        [[p['lon'], p['lat'], p['elevation']] for p in points]
        for points in segments
        if points
    ]
    feature = geojson.Feature(
        id=metadata['id'],
        geometry=geojson.MultiLineString(coordinates),
        properties=flatten_properties(metadata, tags=metadata.get('tags')),
    )

    relative_path = os.path.join(ACTIVITIES_DIRNAME, f"{metadata['id']}.geojson")
    target = os.path.join(output_dir, relative_path)
    os.makedirs(os.path.dirname(target), exist_ok=True)
    with open(target, 'w', encoding='utf-8') as f:
        f.write(geojson.dumps(feature, indent=2))
    return relative_path


def _sort_newest_first(activities):
    return sorted(activities, key=lambda a: a['date'], reverse=True)


def create_activity_index(activities=None):
    """Create an activity index sorted by date, newest first."""
    return {
        'version': INDEX_VERSION,
        'generated_at': datetime.now(timezone.utc),
        'activities': _sort_newest_first(activities or []),
    }


def add_to_index(index, activity):
    """Insert an activity, replacing any existing one with the same id."""
    activities = [a for a in index['activities'] if a['id'] != activity['id']]
    activities.append(activity)
    return {
        'version': index['version'],
        'generated_at': datetime.now(timezone.utc),
        'activities': _sort_newest_first(activities),
    }


def _serialize_activity(activity):
    return {**activity, 'date': activity['date'].isoformat()}


def _deserialize_activity(data):
    return {**data, 'date': datetime.fromisoformat(data['date'])}


def serialize_index(index):
    """Serialize the index to a JSON string with ISO dates."""
    return json.dumps({
        'version': index['version'],
        'generated_at': index['generated_at'].isoformat(),
        'activities': [_serialize_activity(a) for a in index['activities']],
    }, indent=2)


def deserialize_index(text):
    """Parse a JSON string produced by serialize_index."""
    data = json.loads(text)
    return {
        'version': data['version'],
        'generated_at': datetime.fromisoformat(data['generated_at']),
        'activities': [_deserialize_activity(a) for a in data['activities']],
    }


def load_activity_index(output_dir):
    """Load index.json from the output directory, or an empty index."""
    path = os.path.join(output_dir, INDEX_FILENAME)
    if not os.path.exists(path):
        return create_activity_index()
    with open(path, 'r', encoding='utf-8') as f:
        return deserialize_index(f.read())


def save_activity_index(index, output_dir):
    """Write index.json into the output directory."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, INDEX_FILENAME)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(serialize_index(index))
    return path


def update_activity_index(output_dir, activity):
    """Add one activity to index.json. Serialized across threads."""
    with _index_lock:
        index = add_to_index(load_activity_index(output_dir), activity)
        save_activity_index(index, output_dir)
    logger.debug("Indexed activity %s", activity['id'])
    return index
