"""3D Douglas-Peucker track simplification."""

import math

import numpy as np

DEFAULT_ELEVATION_WEIGHT = 1.0

# Approximate meters per degree of latitude.
METERS_PER_DEGREE_LAT = 111320.0


def perpendicular_distance_3d(point, line_start, line_end, elevation_weight=DEFAULT_ELEVATION_WEIGHT):
    """
    Distance from a point to a line segment in a local metric space.

    Lat/lon are scaled to approximate meters around the segment's mean
    latitude and elevation is multiplied by ``elevation_weight`` to form the
    third axis.

    Args:
        point: Point dict with lat, lon, elevation
        line_start: Segment start point
        line_end: Segment end point
        elevation_weight: Scale applied to elevation differences

    Returns:
        float: Distance in approximate meters
    """
    avg_lat = (line_start['lat'] + line_end['lat']) / 2.0
    meters_per_degree_lon = METERS_PER_DEGREE_LAT * math.cos(math.radians(avg_lat))

    x1 = line_start['lon'] * meters_per_degree_lon
    y1 = line_start['lat'] * METERS_PER_DEGREE_LAT
    z1 = line_start['elevation'] * elevation_weight

    x2 = line_end['lon'] * meters_per_degree_lon
    y2 = line_end['lat'] * METERS_PER_DEGREE_LAT
    z2 = line_end['elevation'] * elevation_weight

    x0 = point['lon'] * meters_per_degree_lon
    y0 = point['lat'] * METERS_PER_DEGREE_LAT
    z0 = point['elevation'] * elevation_weight

    dx = x2 - x1
    dy = y2 - y1
    dz = z2 - z1
    length_sq = dx * dx + dy * dy + dz * dz

    if length_sq == 0:
        return math.sqrt((x0 - x1) ** 2 + (y0 - y1) ** 2 + (z0 - z1) ** 2)

    t = ((x0 - x1) * dx + (y0 - y1) * dy + (z0 - z1) * dz) / length_sq
    t = max(0.0, min(1.0, t))

    return math.sqrt(
        (x0 - (x1 + t * dx)) ** 2
        + (y0 - (y1 + t * dy)) ** 2
        + (z0 - (z1 + t * dz)) ** 2
    )


def _range_distances(lons, lats, eles, start, end):
    """Vectorized perpendicular distances for points strictly between start and end."""
    avg_lat = (lats[start] + lats[end]) / 2.0
    meters_per_degree_lon = METERS_PER_DEGREE_LAT * math.cos(math.radians(avg_lat))

    xs = lons[start:end + 1] * meters_per_degree_lon
    ys = lats[start:end + 1] * METERS_PER_DEGREE_LAT
    zs = eles[start:end + 1]

    x1, y1, z1 = xs[0], ys[0], zs[0]
    dx, dy, dz = xs[-1] - x1, ys[-1] - y1, zs[-1] - z1
    px = xs[1:-1] - x1
    py = ys[1:-1] - y1
    pz = zs[1:-1] - z1

    length_sq = dx * dx + dy * dy + dz * dz
    if length_sq == 0:
        return np.sqrt(px * px + py * py + pz * pz)

    t = np.clip((px * dx + py * dy + pz * dz) / length_sq, 0.0, 1.0)
    ox = px - t * dx
    oy = py - t * dy
    oz = pz - t * dz
    return np.sqrt(ox * ox + oy * oy + oz * oz)


def simplify_3d(points, tolerance, elevation_weight=DEFAULT_ELEVATION_WEIGHT):
    """
    Simplify a point sequence with the 3D Douglas-Peucker algorithm.

    The first and last points are always kept. Surviving points are the
    original dicts, so timestamps and extensions come through untouched.
    Ranges are processed from an explicit stack rather than by recursion,
    which keeps tracks of tens of thousands of points safe.

    Args:
        points: List of point dicts
        tolerance: Distance tolerance in degrees (converted to meters)
        elevation_weight: Scale applied to elevation before comparison

    Returns:
        list: Simplified list of point dicts
    """
    n = len(points)
    if n <= 2 or tolerance <= 0:
        return list(points)

    tolerance_meters = tolerance * METERS_PER_DEGREE_LAT

    lons = np.fromiter((p['lon'] for p in points), dtype=np.float64, count=n)
    lats = np.fromiter((p['lat'] for p in points), dtype=np.float64, count=n)
    eles = np.fromiter((p['elevation'] for p in points), dtype=np.float64, count=n) * elevation_weight

    keep = np.zeros(n, dtype=bool)
    keep[0] = True
    keep[-1] = True

    stack = [(0, n - 1)]
    while stack:
        start, end = stack.pop()
        if end - start <= 1:
            continue

        distances = _range_distances(lons, lats, eles, start, end)
        offset = int(np.argmax(distances))
        if distances[offset] > tolerance_meters:
            index = start + 1 + offset
            keep[index] = True
            stack.append((start, index))
            stack.append((index, end))

    return [point for point, kept in zip(points, keep) if kept]
