#!/usr/bin/env python3
"""
make_satellite_map.py - Nest sites over a satellite image of the colony

Produces two figures from one basemap request:
  - color satellite image, nests colored by clutch size
  - monochrome ("bw") image, nests sized by clutch size, so the symbols
    carry the color

Set SEABIRD_MAPS_TILE_API_KEY when SEABIRD_MAPS_TILE_PROVIDER names a
provider that needs a key.

Usage:
    uv run python make_satellite_map.py
"""

import logging

from basemap import fetch_basemap
from extent import build_extent, extent_bounds, extent_center
from features import read_points
from map_layers import (
    basemap_layer, points_layer, render_map, save_map,
    add_scale_bar, add_north_arrow, add_date_stamp, draw_neatline,
)
from map_config import (
    COLONY_CORNERS, DATA_CRS, BASEMAP_PROVIDER, BASEMAP_ZOOM, BASEMAP_SIZE,
    TILE_API_KEY, NEST_SITES_PATH, OUTPUT_DIR, EGG_COUNT_CMAP, NEST_COLOR,
)


def plot_nests_on_basemap(basemap, nests, extent, by="color"):
    """Nest layer over a basemap; ``by`` picks whether eggs drive color or size."""
    if by == "color":
        nest_layer = points_layer(nests, name="Nest sites", color_field="eggs",
                                  cmap=EGG_COUNT_CMAP, color_discrete=True, size=70,
                                  label_field="nest_id", label_offset=(7, 7))
    else:
        nest_layer = points_layer(nests, name="Nest sites", facecolor=NEST_COLOR,
                                  size_field="eggs", size_range=(20, 220), size_discrete=True,
                                  marker="^", label_field="nest_id", label_offset=(7, 7))

    fig, ax = render_map([basemap_layer(basemap), nest_layer], extent=extent,
                         figsize=(10, 10))
    add_scale_bar(ax, 0.2, n_segments=2)
    add_north_arrow(ax)
    add_date_stamp(ax, f"Web Mercator, {basemap.provider}")
    draw_neatline(ax, n_segments=10, linewidth=4)
    return fig, ax


def make_satellite_maps():
    print("=" * 60)
    print("Appledore Island Satellite Maps")
    print("=" * 60)

    corners = build_extent(*COLONY_CORNERS, crs=DATA_CRS)
    extent = extent_bounds(corners)
    center = extent_center(extent)
    nests = read_points(NEST_SITES_PATH)

    outputs = []
    for style, by in (("color", "color"), ("bw", "size")):
        print(f"\nFetching {style} basemap from {BASEMAP_PROVIDER} (zoom {BASEMAP_ZOOM})...")
        basemap = fetch_basemap(center, BASEMAP_ZOOM, provider=BASEMAP_PROVIDER,
                                style=style, api_key=TILE_API_KEY, size=BASEMAP_SIZE)
        print(f"  Image: {basemap.image.shape[1]} x {basemap.image.shape[0]} px")

        fig, ax = plot_nests_on_basemap(basemap, nests, extent, by=by)
        ax.set_title(f"Nest sites by clutch size ({style})", fontsize=16,
                     fontweight='bold', pad=10)
        outputs.append(save_map(fig, OUTPUT_DIR / f"satellite_nest_sites_{style}.png"))
    return outputs


def main():
    logging.basicConfig(level=logging.INFO, format="  %(message)s")
    make_satellite_maps()
    print("\nDone!")


if __name__ == "__main__":
    main()
