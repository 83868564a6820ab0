"""
bathymetry.py - Depth grid for the foraging region

Reads the NOAA ETOPO relief grid (OPeNDAP or a local .nc/.grd file),
subsets it to a lon/lat range, and sorts depths into discrete bands for
shading.
"""

import logging

import numpy as np
import pandas as pd
import xarray as xr

from map_config import BATHY_URL, BATHY_RESOLUTION, DEPTH_BREAKS

logger = logging.getLogger(__name__)


def fetch_bathymetry(lon1, lon2, lat1, lat2, resolution: int = BATHY_RESOLUTION,
                     source=BATHY_URL) -> xr.DataArray:
    """Fetch a depth grid for a lon/lat range.

    Parameters
    ----------
    lon1, lon2, lat1, lat2 : float
        Range limits in degrees; either order is accepted.
    resolution : int
        Keep every ``resolution``-th grid cell (ETOPO1 cells are 1 arc-minute).
    source : str or Path
        OPeNDAP URL or local NetCDF/GMT grid with lon, lat and z.

    Returns
    -------
    xr.DataArray
        Depth (m, negative below sea level) with dims ("y", "x"), y ascending.
    """
    lon_min, lon_max = sorted((float(lon1), float(lon2)))
    lat_min, lat_max = sorted((float(lat1), float(lat2)))
    if lon_min == lon_max or lat_min == lat_max:
        raise ValueError(f"Degenerate bathymetry range: lon {lon1}..{lon2}, lat {lat1}..{lat2}")
    if int(resolution) != resolution or resolution < 1:
        raise ValueError(f"resolution must be a positive integer, got {resolution}")

    print(f"Loading bathymetry from {source}...")
    ds = xr.open_dataset(source)
    depth = ds['z'].sel(lon=slice(lon_min, lon_max), lat=slice(lat_min, lat_max))
    if resolution > 1:
        depth = depth.isel(lon=slice(None, None, resolution), lat=slice(None, None, resolution))
    depth = depth.load()
    ds.close()

    depth = depth.rename({'lon': 'x', 'lat': 'y'}).transpose('y', 'x').rename('depth')
    depth.attrs.update({'crs': 'EPSG:4326', 'units': 'm', 'resolution': resolution})
    logger.info("Bathymetry grid: %d x %d, depth %.0f to %.0f m",
                depth.sizes['x'], depth.sizes['y'],
                float(depth.min()), float(depth.max()))
    return depth


def depth_labels(breaks) -> list:
    """Readable band labels: "< b1 m", "b1 to b2 m", ..., ">= bk m"."""
    breaks = list(breaks)
    labels = [f"< {breaks[0]:g} m"]
    labels += [f"{lo:g} to {hi:g} m" for lo, hi in zip(breaks[:-1], breaks[1:])]
    labels.append(f">= {breaks[-1]:g} m")
    return labels


def bin_depths(values, breaks=DEPTH_BREAKS, labels=None) -> pd.Categorical:
    """Sort depth values into len(breaks) + 1 half-open bands.

    The bands are (-inf, b1), [b1, b2), ..., [bk, inf), so every finite
    value lands in exactly one band. NaN stays missing.
    """
    breaks = np.asarray(breaks, dtype=float)
    if breaks.ndim != 1 or breaks.size == 0:
        raise ValueError("breaks must be a non-empty 1-D sequence")
    if not np.all(np.isfinite(breaks)):
        raise ValueError("breaks must be finite; the outer bands are already unbounded")
    if np.any(np.diff(breaks) <= 0):
        raise ValueError(f"breaks must be strictly increasing, got {breaks.tolist()}")
    if labels is None:
        labels = depth_labels(breaks)
    if len(labels) != breaks.size + 1:
        raise ValueError(f"Need {breaks.size + 1} labels for {breaks.size} breaks, got {len(labels)}")

    edges = np.concatenate([[-np.inf], breaks, [np.inf]])
    flat = np.asarray(values, dtype=float).ravel()
    return pd.cut(flat, bins=edges, right=False, labels=labels, ordered=True)


def depth_band_grid(depth: xr.DataArray, breaks=DEPTH_BREAKS) -> xr.DataArray:
    """Band index per grid cell (-1 where depth is missing)."""
    bands = bin_depths(depth.values, breaks)
    codes = np.asarray(bands.codes).reshape(depth.shape)
    return depth.copy(data=codes).rename('depth_band')
