"""Great-circle and 3D distance helpers."""

import math

EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Distance between two points on a spherical Earth.

    Args:
        lat1: Latitude of the first point in degrees
        lon1: Longitude of the first point in degrees
        lat2: Latitude of the second point in degrees
        lon2: Longitude of the second point in degrees

    Returns:
        float: Distance in kilometers
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_3d(lat1, lon1, ele1, lat2, lon2, ele2):
    """
    Distance between two points including the elevation change.

    Elevations are in meters; the result is in kilometers.
    """
    horizontal = haversine_distance(lat1, lon1, lat2, lon2)
    vertical = (ele2 - ele1) / 1000.0
    return math.sqrt(horizontal * horizontal + vertical * vertical)
