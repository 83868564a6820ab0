"""
elevation.py - Terrain elevation for the colony

Elevation comes from the AWS open terrain tiles (Terrarium PNG encoding),
fetched through contextily so tiles are cached by contextily itself. The
decoded grid is returned with lon/lat coordinates, cropped to the study
extent, and flattened to an (x, y, value) table for plotting.
"""

import logging

import numpy as np
import pandas as pd
import xarray as xr
import contextily as ctx
from pyproj import Transformer
from xyzservices import TileProvider

from extent import extent_bounds
from map_config import ELEVATION_ZOOM, ELEVATION_FLOOR_M

logger = logging.getLogger(__name__)

TERRARIUM = TileProvider(
    name="AWS.Terrarium",
    url="https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png",
    attribution="Terrain Tiles: Mapzen, hosted by AWS Open Data",
    max_zoom=15,
)

CLIP_MODES = ("bbox", "tile")

# Web Mercator axes are separable, so x and y convert independently
_MERCATOR_TO_LONLAT = Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)


def decode_terrarium(img: np.ndarray) -> np.ndarray:
    """Decode Terrarium RGB pixels to meters: R*256 + G + B/256 - 32768."""
    rgb = img[..., :3].astype(np.float64)
    return rgb[..., 0] * 256.0 + rgb[..., 1] + rgb[..., 2] / 256.0 - 32768.0


def fetch_elevation(points, zoom: int = ELEVATION_ZOOM, clip: str = "bbox",
                    source: TileProvider = TERRARIUM) -> xr.DataArray:
    """Fetch an elevation grid covering a point set.

    Parameters
    ----------
    points : gpd.GeoDataFrame
        Point set with a CRS; its bounds define the request extent.
    zoom : int
        Tile zoom level (14 is ~7 m per pixel at the Isles of Shoals).
    clip : str
        "bbox" crops to the points' bounds, "tile" keeps the full tile mosaic.
    source : xyzservices.TileProvider
        Terrarium-encoded tile source.

    Returns
    -------
    xr.DataArray
        Elevation in meters with dims ("y", "x") and lon/lat coordinates.
        y runs north to south, as in the tiles.
    """
    if clip not in CLIP_MODES:
        raise ValueError(f"clip must be one of {CLIP_MODES}, got {clip!r}")
    max_zoom = source.get("max_zoom", 15)
    if not 0 <= zoom <= max_zoom:
        raise ValueError(f"zoom must be between 0 and {max_zoom}, got {zoom}")
    if points.crs is None:
        raise ValueError("Point set has no CRS; build it with build_extent()")

    extent = extent_bounds(points.to_crs("EPSG:4326"))
    logger.info("Requesting %s tiles at zoom %d for %.4f to %.4f E, %.4f to %.4f N",
                source.name, zoom, extent['lon_min'], extent['lon_max'],
                extent['lat_min'], extent['lat_max'])
    img, (x_min, x_max, y_min, y_max) = ctx.bounds2img(
        extent['lon_min'], extent['lat_min'], extent['lon_max'], extent['lat_max'],
        zoom=zoom, source=source, ll=True,
    )
    z = decode_terrarium(img)

    # Pixel centers in Web Mercator, row 0 at the top
    n_rows, n_cols = z.shape
    dx = (x_max - x_min) / n_cols
    dy = (y_max - y_min) / n_rows
    xs = x_min + (np.arange(n_cols) + 0.5) * dx
    ys = y_max - (np.arange(n_rows) + 0.5) * dy
    lon, _ = _MERCATOR_TO_LONLAT.transform(xs, np.zeros_like(xs))
    _, lat = _MERCATOR_TO_LONLAT.transform(np.zeros_like(ys), ys)

    grid = xr.DataArray(
        z,
        dims=("y", "x"),
        coords={"y": np.asarray(lat), "x": np.asarray(lon)},
        name="elevation",
        attrs={"crs": "EPSG:4326", "units": "m", "zoom": zoom},
    )
    if clip == "bbox":
        grid = grid.sel(x=slice(extent['lon_min'], extent['lon_max']),
                        y=slice(extent['lat_max'], extent['lat_min']))
        if grid.size == 0:
            raise ValueError(
                f"Extent is smaller than one pixel at zoom {zoom}; "
                "raise zoom or use clip='tile'"
            )

    logger.info("Elevation grid: %d x %d, %.1f to %.1f m",
                grid.sizes['x'], grid.sizes['y'],
                float(grid.min()), float(grid.max()))
    return grid


def raster_to_table(grid: xr.DataArray) -> pd.DataFrame:
    """Flatten a grid to x, y, value rows, dropping missing samples."""
    table = grid.to_dataframe(name="value").reset_index()
    table = table[["x", "y", "value"]].dropna(subset=["value"])
    return table.reset_index(drop=True)


def table_to_grid(table: pd.DataFrame) -> tuple:
    """Pivot an x, y, value table back to (x, y, z) arrays with y ascending."""
    wide = table.pivot(index="y", columns="x", values="value").sort_index()
    wide = wide.sort_index(axis=1)
    return wide.columns.values, wide.index.values, wide.values


def clamp_elevation(values, threshold: float = ELEVATION_FLOOR_M, replacement=None):
    """Flatten everything at or below ``threshold`` to a single value.

    Values ``<= threshold`` become ``replacement`` (the threshold itself by
    default); values above it and NaN are left alone. Accepts numpy arrays,
    pandas Series and xarray DataArrays and returns the same kind.
    """
    if replacement is None:
        replacement = threshold
    if isinstance(values, (pd.Series, xr.DataArray)):
        return values.where(~(values <= threshold), replacement)
    arr = np.asarray(values, dtype=float)
    return np.where(arr <= threshold, replacement, arr)
