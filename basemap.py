"""
basemap.py - Pre-rendered satellite basemaps

A basemap is a fixed-size image window around a center point at a given
zoom, cut from xyzservices tile providers through contextily. Providers
that need a token get it from the api_key argument or the
SEABIRD_MAPS_TILE_API_KEY environment variable.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
import contextily as ctx
import xyzservices
from pyproj import Transformer

import map_config
from extent import extent_center
from map_config import BASEMAP_PROVIDER, BASEMAP_SIZE

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6378137.0
TILE_SIZE_PX = 256
STYLES = ("color", "bw")
GRAY_WEIGHTS = (0.30, 0.59, 0.11)

_LONLAT_TO_MERCATOR = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
_MERCATOR_TO_LONLAT = Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)

# xyzservices marks missing credentials with this placeholder
_TOKEN_PLACEHOLDER = "<insert your"


@dataclass
class Basemap:
    """Image plus the Web Mercator extent (left, right, bottom, top) it covers."""
    image: np.ndarray
    extent: tuple
    crs: str = "EPSG:3857"
    provider: str = ""
    style: str = "color"

    def bounds_lonlat(self) -> dict:
        left, right, bottom, top = self.extent
        lons, lats = _MERCATOR_TO_LONLAT.transform([left, right], [bottom, top])
        return {
            'lon_min': lons[0],
            'lon_max': lons[1],
            'lat_min': lats[0],
            'lat_max': lats[1],
        }


def resolve_provider(provider, api_key=None):
    """Look up a provider by name and fill in its token if it needs one."""
    if isinstance(provider, str):
        tile_provider = xyzservices.providers.query_name(provider)
    else:
        tile_provider = provider

    if not tile_provider.requires_token():
        return tile_provider

    key = api_key or map_config.TILE_API_KEY
    if not key:
        raise ValueError(
            f"{tile_provider.name} requires an API key; pass api_key= "
            f"or set {map_config.TILE_API_KEY_ENV}"
        )
    token_fields = [name for name, value in tile_provider.items()
                    if isinstance(value, str) and _TOKEN_PLACEHOLDER in value]
    return tile_provider(**{name: key for name in token_fields})


def meters_per_pixel(zoom: int) -> float:
    """Web Mercator ground resolution at the equator."""
    return 2 * math.pi * EARTH_RADIUS_M / (TILE_SIZE_PX * 2 ** zoom)


def window_around(center, zoom, size=BASEMAP_SIZE):
    """Web Mercator (left, bottom, right, top) of a size-pixel window."""
    lon, lat = center
    x, y = _LONLAT_TO_MERCATOR.transform(lon, lat)
    res = meters_per_pixel(zoom)
    half_w = size[0] / 2 * res
    half_h = size[1] / 2 * res
    return x - half_w, y - half_h, x + half_w, y + half_h


def size_for_extent(extent, zoom, center=None):
    """Window size in pixels that covers ``extent`` when centered on ``center``.

    ``center`` defaults to the extent's lon/lat midpoint, which is not the
    Mercator midpoint, so the window is sized by the farther edge on each axis.
    """
    if center is None:
        center = extent_center(extent)
    cx, cy = _LONLAT_TO_MERCATOR.transform(*center)
    xs, ys = _LONLAT_TO_MERCATOR.transform([extent['lon_min'], extent['lon_max']],
                                           [extent['lat_min'], extent['lat_max']])
    res = meters_per_pixel(zoom)
    half_w = max(abs(xs[0] - cx), abs(xs[1] - cx))
    half_h = max(abs(ys[0] - cy), abs(ys[1] - cy))
    return int(math.ceil(2 * half_w / res)), int(math.ceil(2 * half_h / res))


def crop_to_window(img, extent, window):
    """Cut a tile mosaic down to the requested window."""
    x_min, x_max, y_min, y_max = extent
    left, bottom, right, top = window
    n_rows, n_cols = img.shape[:2]
    xres = (x_max - x_min) / n_cols
    yres = (y_max - y_min) / n_rows

    c0 = max(int(np.floor((left - x_min) / xres)), 0)
    c1 = min(int(np.ceil((right - x_min) / xres)), n_cols)
    r0 = max(int(np.floor((y_max - top) / yres)), 0)
    r1 = min(int(np.ceil((y_max - bottom) / yres)), n_rows)

    cropped = img[r0:r1, c0:c1]
    cropped_extent = (x_min + c0 * xres, x_min + c1 * xres,
                      y_max - r1 * yres, y_max - r0 * yres)
    return cropped, cropped_extent


def to_grayscale(img: np.ndarray) -> np.ndarray:
    """Luminance-weighted gray copy of an RGB(A) image, alpha preserved."""
    rgb = img[..., :3].astype(np.float64)
    gray = rgb @ np.array(GRAY_WEIGHTS)
    gray = np.clip(np.rint(gray), 0, 255).astype(img.dtype)
    out = img.copy()
    for band in range(3):
        out[..., band] = gray
    return out


def fetch_basemap(center, zoom: int, provider=BASEMAP_PROVIDER, style: str = "color",
                  api_key=None, size=BASEMAP_SIZE) -> Basemap:
    """Fetch a pre-rendered basemap window.

    Parameters
    ----------
    center : tuple of float
        (lon, lat) of the window center.
    zoom : int
        Tile zoom level.
    provider : str or xyzservices.TileProvider
        e.g. "Esri.WorldImagery" or "MapTiler.Satellite" (needs a key).
    style : str
        "color" or "bw".
    api_key : str, optional
        Token for providers that need one.
    size : tuple of int
        Window size in pixels (width, height).

    Returns
    -------
    Basemap
    """
    if style not in STYLES:
        raise ValueError(f"style must be one of {STYLES}, got {style!r}")
    tile_provider = resolve_provider(provider, api_key=api_key)

    window = window_around(center, zoom, size)
    logger.info("Requesting %s basemap at zoom %d around (%.4f, %.4f)",
                tile_provider.name, zoom, center[0], center[1])
    img, extent = ctx.bounds2img(*window, zoom=zoom, source=tile_provider, ll=False)
    img, extent = crop_to_window(img, extent, window)

    if style == "bw":
        img = to_grayscale(img)

    return Basemap(image=img, extent=tuple(float(v) for v in extent),
                   provider=tile_provider.name, style=style)
