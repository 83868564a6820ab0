"""
extent.py - Bounding boxes for the study area

Extents are passed around as plain dicts with lon_min/lon_max/lat_min/lat_max
keys, the same shape every plotting helper in this repo expects.
"""

import numpy as np
import geopandas as gpd
from pyproj import CRS
from shapely.geometry import box


def build_extent(corner1, corner2, crs="EPSG:4326") -> gpd.GeoDataFrame:
    """Turn two (lon, lat) corners into a two-point set tagged with a CRS.

    Parameters
    ----------
    corner1, corner2 : tuple of float
        Opposite corners as (longitude, latitude). Order does not matter.
    crs : str or pyproj.CRS
        Anything pyproj understands. An unknown code raises
        ``pyproj.exceptions.CRSError``.

    Returns
    -------
    gpd.GeoDataFrame
        Two point features sharing one CRS.
    """
    crs = CRS.from_user_input(crs)
    (x1, y1), (x2, y2) = corner1, corner2
    coords = np.array([x1, y1, x2, y2], dtype=float)
    if not np.all(np.isfinite(coords)):
        raise ValueError(f"Extent corners must be finite, got {corner1} and {corner2}")
    if x1 == x2 or y1 == y2:
        raise ValueError(f"Degenerate extent: {corner1} and {corner2} do not span a rectangle")

    return gpd.GeoDataFrame(
        {"corner": ["first", "second"]},
        geometry=gpd.points_from_xy([x1, x2], [y1, y2]),
        crs=crs,
    )


def extent_bounds(points) -> dict:
    """Bounding dict of a point set (or any GeoDataFrame/GeoSeries)."""
    lon_min, lat_min, lon_max, lat_max = (float(v) for v in points.total_bounds)
    return {
        'lon_min': lon_min,
        'lon_max': lon_max,
        'lat_min': lat_min,
        'lat_max': lat_max,
    }


def extent_around(lon, lat, half_width, half_height) -> dict:
    """Extent centered on (lon, lat), sized in degrees."""
    if half_width <= 0 or half_height <= 0:
        raise ValueError("half_width and half_height must be positive")
    return {
        'lon_min': lon - half_width,
        'lon_max': lon + half_width,
        'lat_min': lat - half_height,
        'lat_max': lat + half_height,
    }


def extent_center(extent):
    return ((extent['lon_min'] + extent['lon_max']) / 2,
            (extent['lat_min'] + extent['lat_max']) / 2)


def extent_box(extent):
    """Shapely polygon for an extent dict, for use as a clip mask."""
    return box(extent['lon_min'], extent['lat_min'],
               extent['lon_max'], extent['lat_max'])


def extent_to_list(extent):
    """[x0, x1, y0, y1] as cartopy's set_extent wants it."""
    return [extent['lon_min'], extent['lon_max'],
            extent['lat_min'], extent['lat_max']]
