"""GPX documents and point dicts shared by the test modules."""

from datetime import datetime, timedelta, timezone

GPX_HEADER = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<gpx version="1.1" creator="drift-tests" '
    'xmlns="http://www.topografix.com/GPX/1/1" '
    'xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v1">\n'
)

BASE_TIME = datetime(2024, 5, 4, 7, 30, 0, tzinfo=timezone.utc)


def _trkpt(lat, lon, ele=None, time=None, extensions=None):
    parts = [f'<trkpt lat="{lat}" lon="{lon}">']
    if ele is not None:
        parts.append(f"<ele>{ele}</ele>")
    if time is not None:
        parts.append(f"<time>{time}</time>")
    if extensions:
        parts.append(f"<extensions>{extensions}</extensions>")
    parts.append("</trkpt>")
    return "".join(parts)


def make_gpx(segments, name="Morning Ride", activity_type="cycling"):
    """
    Build a GPX document.

    Args:
        segments: list of segments, each a list of tuples
            (lat, lon, ele, time_str[, extensions_xml])
        name: Track name, or None to omit
        activity_type: Track type, or None to omit
    """
    body = ["<trk>"]
    if name is not None:
        body.append(f"<name>{name}</name>")
    if activity_type is not None:
        body.append(f"<type>{activity_type}</type>")
    for segment in segments:
        body.append("<trkseg>")
        for point in segment:
            body.append(_trkpt(*point))
        body.append("</trkseg>")
    body.append("</trk>")
    return GPX_HEADER + "".join(body) + "</gpx>\n"


def iso(seconds_from_base):
    return (BASE_TIME + timedelta(seconds=seconds_from_base)).strftime("%Y-%m-%dT%H:%M:%SZ")


def simple_gpx(name="Morning Ride", activity_type="cycling", offset_lat=0.0):
    """Five timed points climbing gently northwards."""
    points = [
        (47.6000 + offset_lat + i * 0.001, -122.3000, 100 + i * 5, iso(i * 10))
        for i in range(5)
    ]
    return make_gpx([points], name=name, activity_type=activity_type)


def point(lat, lon, elevation=0.0, seconds=None, extensions=None):
    """Point dict in the shape the parser produces."""
    return {
        'lon': lon,
        'lat': lat,
        'elevation': float(elevation),
        'time': BASE_TIME + timedelta(seconds=seconds) if seconds is not None else None,
        'extensions': extensions,
    }


def segment(*points):
    return {'points': list(points)}
