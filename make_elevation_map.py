#!/usr/bin/env python3
"""
make_elevation_map.py - Hillshaded elevation of Appledore Island with nest sites

Steps:
  1. Build the colony extent from its two corners (EPSG:4326)
  2. Fetch zoom-14 terrain tiles and crop them to the extent
  3. Flatten the grid to an x, y, value table and clamp sea level to 0 m
  4. Draw the elevation, then nest sites sized by clutch size (eggs)

Usage:
    uv run python make_elevation_map.py
"""

import logging

from elevation import fetch_elevation, raster_to_table, clamp_elevation
from extent import build_extent, extent_bounds
from features import read_points
from map_layers import (
    elevation_layer, points_layer, render_map, save_map,
    add_scale_bar, add_north_arrow, add_gridlines, add_colorbar,
    add_date_stamp, draw_neatline,
)
from map_config import (
    COLONY_CORNERS, DATA_CRS, ELEVATION_ZOOM, ELEVATION_FLOOR_M,
    NEST_SITES_PATH, OUTPUT_DIR, NEST_COLOR,
)


def make_elevation_map():
    """Elevation basemap with nest sites. Returns the output path."""
    print("=" * 60)
    print("Appledore Island Elevation + Nest Sites")
    print("=" * 60)

    corners = build_extent(*COLONY_CORNERS, crs=DATA_CRS)
    extent = extent_bounds(corners)
    print(f"Extent: {extent['lon_min']:.4f} to {extent['lon_max']:.4f}°E, "
          f"{extent['lat_min']:.4f} to {extent['lat_max']:.4f}°N")

    print(f"\nFetching elevation (zoom {ELEVATION_ZOOM})...")
    grid = fetch_elevation(corners, zoom=ELEVATION_ZOOM, clip="bbox")
    table = raster_to_table(grid)
    table['value'] = clamp_elevation(table['value'], threshold=ELEVATION_FLOOR_M)
    print(f"  {len(table)} cells, {table['value'].min():.1f} to {table['value'].max():.1f} m")

    nests = read_points(NEST_SITES_PATH)

    layers = [
        elevation_layer(table, hillshade=True),
        points_layer(nests, name="Nest sites", facecolor=NEST_COLOR,
                     size_field="eggs", size_range=(20, 200), size_discrete=True,
                     label_field="nest_id", label_offset=(6, 6)),
    ]
    fig, ax = render_map(layers, extent=extent, figsize=(10, 10),
                         title="Appledore Island: elevation and nests")

    add_gridlines(ax, color='gray')
    add_scale_bar(ax, 0.2, n_segments=2)
    add_north_arrow(ax)
    add_date_stamp(ax, "WGS84")
    add_colorbar(fig, ax, layers[0].colorscale, "Elevation (m)")
    draw_neatline(ax, n_segments=10, linewidth=4)

    return save_map(fig, OUTPUT_DIR / "elevation_nest_sites.png")


def main():
    logging.basicConfig(level=logging.INFO, format="  %(message)s")
    make_elevation_map()
    print("\nDone!")


if __name__ == "__main__":
    main()
