"""Error types raised by the track pipeline.

Every error derives from ``DriftError`` so callers that drive many files
(sync, watch, HTTP handlers) can record a per-file failure with a single
``except DriftError`` and let anything else propagate.
"""


class DriftError(Exception):
    """Base class for all pipeline errors."""


class GPXParseError(DriftError):
    """The document is not well-formed XML or has no track."""

    def __init__(self, message, file_path=None, line_number=None):
        parts = [message]
        if file_path:
            parts.append(f"in {file_path}")
        if line_number:
            parts.append(f"at line {line_number}")
        super().__init__(" ".join(parts))
        self.file_path = file_path
        self.line_number = line_number


class EmptyTrackError(DriftError):
    """The document parsed but holds zero track points."""

    def __init__(self, message=None, file_path=None):
        message = message or "Track contains no track points"
        if file_path:
            message = f"{message} in {file_path}"
        super().__init__(message)
        self.file_path = file_path


class InvalidCoordinatesError(DriftError):
    """Latitude outside [-90, 90] or longitude outside [-180, 180]."""

    def __init__(self, lat, lon, point_index=None, file_path=None):
        issues = []
        if lat < -90 or lat > 90:
            issues.append(f"latitude {lat} out of range [-90, 90]")
        if lon < -180 or lon > 180:
            issues.append(f"longitude {lon} out of range [-180, 180]")

        if point_index is not None:
            message = f"Invalid coordinates at point {point_index}: {', '.join(issues)}"
        else:
            message = f"Invalid coordinates: {', '.join(issues)}"
        if file_path:
            message = f"{message} in {file_path}"

        super().__init__(message)
        self.lat = lat
        self.lon = lon
        self.point_index = point_index
        self.file_path = file_path


def is_valid_coordinate(lat, lon):
    """Check latitude/longitude ranges."""
    return -90 <= lat <= 90 and -180 <= lon <= 180
