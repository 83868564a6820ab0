#!/usr/bin/env python3
"""
make_bathymetry_map.py - Depth bands, coastline and fishing sites for the foraging region

Fetches ETOPO depth for the region around the Isles of Shoals, shades it in
discrete depth bands, outlines the coastline shapefile and overlays the
fishing sites sized by tow abundance.

Usage:
    uv run python make_bathymetry_map.py
"""

import logging

import numpy as np
import pandas as pd

from bathymetry import fetch_bathymetry, bin_depths
from extent import extent_around
from features import load_features, repair_geometries, crop_features, read_points
from map_layers import (
    depth_layer, polygons_layer, points_layer, render_map, save_map,
    add_scale_bar, add_north_arrow, add_gridlines, add_date_stamp, draw_neatline,
)
from map_config import (
    DATA_CRS, REGION_CENTER, REGION_HALF_WIDTH, REGION_HALF_HEIGHT,
    BATHY_RESOLUTION, DEPTH_BREAKS, COASTLINE_PATH, FISHING_SITES_PATH, OUTPUT_DIR,
)


def summarize_bands(depth):
    """Print how many grid cells fall in each depth band."""
    bands = bin_depths(depth.values, DEPTH_BREAKS)
    counts = pd.Series(bands).value_counts(sort=False)
    for label, count in counts.items():
        print(f"  {label:>16}: {count:6d} cells")
    n_missing = int(np.isnan(depth.values).sum())
    if n_missing:
        print(f"  {'missing':>16}: {n_missing:6d} cells")


def make_bathymetry_map():
    print("=" * 60)
    print("Foraging Region Bathymetry")
    print("=" * 60)

    extent = extent_around(REGION_CENTER['lon'], REGION_CENTER['lat'],
                           REGION_HALF_WIDTH, REGION_HALF_HEIGHT)
    depth = fetch_bathymetry(extent['lon_min'], extent['lon_max'],
                             extent['lat_min'], extent['lat_max'],
                             resolution=BATHY_RESOLUTION)
    print(f"  Grid: {depth.sizes['x']} x {depth.sizes['y']}, "
          f"depth {float(depth.min()):.0f} to {float(depth.max()):.0f} m")
    summarize_bands(depth)

    coastline = repair_geometries(load_features(COASTLINE_PATH, crs=DATA_CRS))
    coastline = crop_features(coastline, extent, crs=DATA_CRS)
    sites = read_points(FISHING_SITES_PATH)

    layers = [
        depth_layer(depth, breaks=DEPTH_BREAKS, contours=True),
        polygons_layer(coastline, name="Coastline", facecolor="#E5D8BD",
                       edgecolor="black", linewidth=0.8, zorder=3),
        points_layer(sites, name="Fishing sites", facecolor="#D55E00", marker="o",
                     size_field="abundance", size_range=(20, 260),
                     label_field="site", label_offset=(8, 6)),
    ]
    fig, ax = render_map(layers, extent=extent, figsize=(11, 10),
                         title="Depth bands and fishing sites",
                         legend_loc='upper left')

    add_gridlines(ax, color='gray')
    add_scale_bar(ax, 10, n_segments=5)
    add_north_arrow(ax)
    add_date_stamp(ax, "WGS84")
    draw_neatline(ax, n_segments=12, linewidth=5)

    return save_map(fig, OUTPUT_DIR / "bathymetry_fishing_sites.png")


def main():
    logging.basicConfig(level=logging.INFO, format="  %(message)s")
    make_bathymetry_map()
    print("\nDone!")


if __name__ == "__main__":
    main()
