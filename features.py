"""
features.py - Vector and point data for the maps

Shapefiles (fishing zones, coastline) are read with geopandas, repaired,
cropped to a window and subset by attribute. Field tables (nest sites,
fishing sites) become point GeoDataFrames.
"""

import logging
from pathlib import Path

import pandas as pd
import geopandas as gpd
from pyproj import CRS

from extent import extent_box

logger = logging.getLogger(__name__)


def load_features(path, crs=None) -> gpd.GeoDataFrame:
    """Read a shapefile (or any OGR dataset) with a usable CRS.

    Parameters
    ----------
    path : str or Path
        Dataset path; for shapefiles the .shx and .dbf companions must sit
        next to it.
    crs : str or pyproj.CRS, optional
        Required when the dataset stores no CRS (no .prj). When the dataset
        has one and it differs, the features are reprojected to ``crs``.

    Returns
    -------
    gpd.GeoDataFrame
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No such dataset: {path}")
    print(f"Loading features from {path.name}...")
    gdf = gpd.read_file(path)

    if gdf.crs is None:
        if crs is None:
            raise ValueError(f"{path.name} has no stored CRS; pass crs= explicitly")
        gdf = gdf.set_crs(crs)
    elif crs is not None and not gdf.crs.equals(CRS.from_user_input(crs)):
        logger.info("Reprojecting %s from %s to %s", path.name, gdf.crs.to_string(), crs)
        gdf = gdf.to_crs(crs)

    print(f"  {len(gdf)} features, CRS {gdf.crs.to_string()}")
    return gdf


def repair_geometries(features: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Make every geometry valid. Valid geometries come back unchanged."""
    n_invalid = int((~features.is_valid).sum())
    if n_invalid:
        logger.info("Repairing %d invalid geometries", n_invalid)
    repaired = features.copy()
    repaired[repaired.geometry.name] = features.make_valid()
    return repaired


def crop_features(features: gpd.GeoDataFrame, extent: dict, crs="EPSG:4326") -> gpd.GeoDataFrame:
    """Clip features to an extent, dropping those that fall outside it.

    ``extent`` is a lon_min/lon_max/lat_min/lat_max dict in ``crs``.
    """
    window = gpd.GeoSeries([extent_box(extent)], crs=crs).to_crs(features.crs)
    cropped = gpd.clip(features, window.iloc[0])
    cropped = cropped[~cropped.geometry.is_empty]
    logger.info("Cropped %d features to %d inside the window", len(features), len(cropped))
    return cropped


def subset_features(features: gpd.GeoDataFrame, field: str, value) -> gpd.GeoDataFrame:
    """Features whose ``field`` equals ``value`` exactly."""
    if field not in features.columns:
        raise KeyError(f"No attribute field {field!r}; have {list(features.columns)}")
    return features[features[field] == value]


def split_features(features: gpd.GeoDataFrame, field: str) -> dict:
    """One subset per distinct value of ``field`` (missing values included)."""
    if field not in features.columns:
        raise KeyError(f"No attribute field {field!r}; have {list(features.columns)}")
    return {value: group for value, group in features.groupby(field, dropna=False, sort=True)}


def points_from_table(table: pd.DataFrame, lon: str = "lon", lat: str = "lat",
                      crs="EPSG:4326") -> gpd.GeoDataFrame:
    """Point GeoDataFrame from a table with longitude/latitude columns."""
    missing = [col for col in (lon, lat) if col not in table.columns]
    if missing:
        raise KeyError(f"Table is missing coordinate columns {missing}")
    return gpd.GeoDataFrame(
        table.copy(),
        geometry=gpd.points_from_xy(table[lon], table[lat]),
        crs=crs,
    )


def read_points(path, lon: str = "lon", lat: str = "lat", crs="EPSG:4326") -> gpd.GeoDataFrame:
    """Read a CSV of field observations into a point GeoDataFrame."""
    path = Path(path)
    table = pd.read_csv(path)
    print(f"Loaded {len(table)} rows from {path.name}")
    return points_from_table(table, lon=lon, lat=lat, crs=crs)
