"""GPX file parsing utilities."""

import logging
from datetime import timezone

import gpxpy
import gpxpy.gpx

from .errors import EmptyTrackError, GPXParseError, InvalidCoordinatesError, is_valid_coordinate

logger = logging.getLogger(__name__)

MISSING_ELEVATION_WARNING = "Missing elevation data in track points"
MISSING_TIMESTAMP_WARNING = "Missing timestamp data in track points"

DEFAULT_TRACK_NAME = "Unnamed Track"

# Local element names found under <extensions>, mapped to point extension keys.
# Garmin's TrackPointExtension uses hr/cad/atemp; power is usually a sibling.
_EXTENSION_FIELDS = {
    "hr": "heart_rate",
    "heartrate": "heart_rate",
    "cad": "cadence",
    "cadence": "cadence",
    "atemp": "temperature",
    "temp": "temperature",
    "power": "power",
    "watts": "power",
}


def _local_name(tag):
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].split(":")[-1].lower()


def _syntax_error_line(exc):
    """Best-effort line number from a gpxpy syntax error."""
    original = getattr(exc, "original_exception", None)
    if original is None:
        return None
    position = getattr(original, "position", None)
    if position:
        return position[0]
    return getattr(original, "lineno", None)


def extract_extensions(point):
    """
    Pull heart rate, cadence, power and temperature out of a gpxpy point.

    Args:
        point: gpxpy GPXTrackPoint

    Returns:
        dict or None: Extension values as floats, None when nothing was found
    """
    if not getattr(point, "extensions", None):
        return None

    values = {}
    for extension in point.extensions:
        for elem in extension.iter():
            key = _EXTENSION_FIELDS.get(_local_name(elem.tag))
            if key is None or key in values or elem.text is None:
                continue
            try:
                values[key] = float(elem.text.strip())
            except ValueError:
                continue

    return values or None


def _normalize_time(value):
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_gpx(content, file_path=None):
    """
    Parse GPX content into a track structure.

    Args:
        content: Raw GPX XML text
        file_path: Optional source path, used only for error messages

    Returns:
        dict: {'track': {'name', 'type', 'segments'}, 'warnings': [...]}

    Raises:
        GPXParseError: Malformed XML or no <trk> element
        EmptyTrackError: Well-formed document without track points
        InvalidCoordinatesError: A point lies outside valid lat/lon ranges
    """
    try:
        gpx = gpxpy.parse(content)
    except gpxpy.gpx.GPXXMLSyntaxException as exc:
        raise GPXParseError(
            "Failed to parse GPX: Invalid XML",
            file_path=file_path,
            line_number=_syntax_error_line(exc),
        ) from exc
    except (gpxpy.gpx.GPXException, ValueError) as exc:
        raise GPXParseError(f"Failed to parse GPX: {exc}", file_path=file_path) from exc

    if not gpx.tracks:
        raise GPXParseError("Failed to parse GPX: No track found", file_path=file_path)

    first_track = gpx.tracks[0]
    segments = []
    has_elevation = False
    has_timestamps = False
    point_index = 0

    for track in gpx.tracks:
        for gpx_segment in track.segments:
            points = []
            for gpx_point in gpx_segment.points:
                lat = gpx_point.latitude
                lon = gpx_point.longitude
                if not is_valid_coordinate(lat, lon):
                    raise InvalidCoordinatesError(lat, lon, point_index=point_index, file_path=file_path)

                elevation = float(gpx_point.elevation) if gpx_point.elevation is not None else 0.0
                point_time = _normalize_time(gpx_point.time)
                if elevation != 0:
                    has_elevation = True
                if point_time is not None:
                    has_timestamps = True

                points.append({
                    'lon': lon,
                    'lat': lat,
                    'elevation': elevation,
                    'time': point_time,
                    'extensions': extract_extensions(gpx_point),
                })
                point_index += 1

            if points:
                segments.append({'points': points})

    if point_index == 0:
        raise EmptyTrackError("Failed to parse GPX: no track points found", file_path=file_path)

    warnings = []
    if not has_elevation:
        warnings.append(MISSING_ELEVATION_WARNING)
    if not has_timestamps:
        warnings.append(MISSING_TIMESTAMP_WARNING)

    for warning in warnings:
        logger.info("%s: %s", file_path or "<gpx>", warning)

    return {
        'track': {
            'name': first_track.name or DEFAULT_TRACK_NAME,
            'type': first_track.type or None,
            'segments': segments,
        },
        'warnings': warnings,
    }


def parse_gpx_file(filepath):
    """
    Parse a GPX file from disk.

    Args:
        filepath: Path to GPX file

    Returns:
        dict: Same structure as parse_gpx
    """
    with open(filepath, 'r', encoding='utf-8') as gpx_file:
        content = gpx_file.read()
    return parse_gpx(content, file_path=str(filepath))
