#!/usr/bin/env python3
"""
make_composite_map.py - Three-panel composite poster figure

Layout:
  +------------------------------------+----+
  | (a) Foraging | (b) Colony          | CB |
  | Region       |  Elevation          |    |
  |              |----------------------|    |
  |  (portrait)  | (c) Colony          |    |
  |              |  Satellite          |    |
  +------------------------------------+----+
  | Three-part caption                      |
  +------------------------------------------+

Usage:
    uv run python make_composite_map.py
"""

import gc
import logging
import textwrap

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import cartopy.crs as ccrs

from basemap import fetch_basemap
from bathymetry import fetch_bathymetry
from elevation import fetch_elevation, raster_to_table, clamp_elevation
from extent import build_extent, extent_bounds, extent_center, extent_around
from features import read_points
from map_layers import (
    depth_layer, elevation_layer, basemap_layer, points_layer, render_map,
    add_scale_bar, add_north_arrow, add_gridlines, add_panel_label,
    add_date_stamp, add_colorbar, draw_neatline, save_map,
)
from map_config import (
    COLONY_CORNERS, DATA_CRS, REGION_CENTER, REGION_HALF_WIDTH, REGION_HALF_HEIGHT,
    ELEVATION_ZOOM, ELEVATION_FLOOR_M, BATHY_RESOLUTION, DEPTH_BREAKS,
    BASEMAP_PROVIDER, BASEMAP_ZOOM, TILE_API_KEY,
    NEST_SITES_PATH, FISHING_SITES_PATH, OUTPUT_DIR,
    EGG_COUNT_CMAP, NEST_COLOR,
)

FS_CAPTION = 14


# ─── Panel (a): Foraging region ───────────────────────────────────────────────

def render_region_overview(ax, colony_extent):
    """Depth bands with fishing sites and the colony outlined."""
    print("Panel (a): Loading regional bathymetry...")
    extent = extent_around(REGION_CENTER['lon'], REGION_CENTER['lat'],
                           REGION_HALF_WIDTH, REGION_HALF_HEIGHT)
    depth = fetch_bathymetry(extent['lon_min'], extent['lon_max'],
                             extent['lat_min'], extent['lat_max'],
                             resolution=BATHY_RESOLUTION)
    sites = read_points(FISHING_SITES_PATH)

    layers = [
        depth_layer(depth, breaks=DEPTH_BREAKS),
        points_layer(sites, name="Fishing sites", facecolor="#D55E00",
                     size_field="abundance", size_range=(15, 180),
                     label_field="site", label_offset=(6, 4)),
    ]
    render_map(layers, extent=extent, ax=ax, legend_loc='lower left')

    # Colony box
    ax.add_patch(mpatches.Rectangle(
        (colony_extent['lon_min'], colony_extent['lat_min']),
        colony_extent['lon_max'] - colony_extent['lon_min'],
        colony_extent['lat_max'] - colony_extent['lat_min'],
        facecolor='none', edgecolor='red', linewidth=2,
        transform=ccrs.PlateCarree(), zorder=12))

    ax.set_title('(a) Foraging Region', fontsize=18, fontweight='bold', pad=10)
    add_gridlines(ax, color='gray')
    add_scale_bar(ax, 10, n_segments=5)
    add_north_arrow(ax)
    add_date_stamp(ax, "WGS84")
    draw_neatline(ax, n_segments=14, linewidth=5)

    del depth
    gc.collect()
    print("  Panel (a) done.")


# ─── Panel (b): Colony elevation ──────────────────────────────────────────────

def render_colony_elevation(ax, corners, nests):
    """Hillshaded elevation with nests sized by clutch. Returns the colorscale."""
    print("Panel (b): Fetching colony elevation...")
    grid = fetch_elevation(corners, zoom=ELEVATION_ZOOM, clip="bbox")
    table = raster_to_table(grid)
    table['value'] = clamp_elevation(table['value'], threshold=ELEVATION_FLOOR_M)

    elevation = elevation_layer(table, hillshade=True)
    layers = [
        elevation,
        points_layer(nests, name="Nest sites", facecolor=NEST_COLOR,
                     size_field="eggs", size_range=(15, 150), size_discrete=True),
    ]
    render_map(layers, extent=extent_bounds(corners), ax=ax, legend_loc='lower right')
    add_panel_label(ax, '(b) Colony Elevation')
    add_scale_bar(ax, 0.2, n_segments=2)
    draw_neatline(ax, n_segments=12, linewidth=5)

    del grid, table
    gc.collect()
    print("  Panel (b) done.")
    return elevation.colorscale


# ─── Panel (c): Colony satellite ──────────────────────────────────────────────

def render_colony_satellite(ax, corners, nests):
    print("Panel (c): Fetching satellite basemap...")
    extent = extent_bounds(corners)
    basemap = fetch_basemap(extent_center(extent), BASEMAP_ZOOM, provider=BASEMAP_PROVIDER,
                            style="color", api_key=TILE_API_KEY)
    layers = [
        basemap_layer(basemap),
        points_layer(nests, name="Nest sites", color_field="eggs", cmap=EGG_COUNT_CMAP,
                     color_discrete=True, size=50, label_field="nest_id",
                     label_offset=(6, 6)),
    ]
    render_map(layers, extent=extent, ax=ax, legend_loc='lower right')
    add_panel_label(ax, '(c) Colony Satellite')
    add_date_stamp(ax, f"Web Mercator, {basemap.provider}")
    draw_neatline(ax, n_segments=12, linewidth=5)
    print("  Panel (c) done.")


# ─── Composite assembly ───────────────────────────────────────────────────────

def make_composite_map():
    """Assemble the three-panel composite poster figure."""
    print("=" * 60)
    print("Composite Seabird Colony Map (3 panels)")
    print("=" * 60)

    corners = build_extent(*COLONY_CORNERS, crs=DATA_CRS)
    colony_extent = extent_bounds(corners)
    nests = read_points(NEST_SITES_PATH)

    fig = plt.figure(figsize=(20, 14))

    #   Panel (a): left=0.06, bottom=0.18, top=0.90  (portrait)
    #   Panel (b): left=0.46, bottom=0.56, top=0.90
    #   Panel (c): left=0.46, bottom=0.18, top=0.52
    ax1 = fig.add_axes([0.06, 0.18, 0.38, 0.72], projection=ccrs.PlateCarree())
    ax2 = fig.add_axes([0.46, 0.56, 0.36, 0.34], projection=ccrs.PlateCarree())
    ax3 = fig.add_axes([0.46, 0.18, 0.36, 0.34], projection=ccrs.GOOGLE_MERCATOR)

    render_region_overview(ax1, colony_extent)
    colorscale = render_colony_elevation(ax2, corners, nests)
    render_colony_satellite(ax3, corners, nests)

    # Colorbar beside the detail panels, placed after cartopy fixes the aspect
    fig.canvas.draw()
    renderer = fig.canvas.get_renderer()
    bbox2 = ax2.get_tightbbox(renderer).transformed(fig.transFigure.inverted())
    bbox3 = ax3.get_tightbbox(renderer).transformed(fig.transFigure.inverted())
    cax_left = max(bbox2.x1, bbox3.x1) + 0.012
    cax = fig.add_axes([cax_left, 0.56, 0.015, 0.34])
    add_colorbar(fig, ax2, colorscale, 'Elevation (m)', cax=cax)

    caption_width = cax_left - 0.06
    caption_ax = fig.add_axes([0.06, 0.005, caption_width, 0.11])
    caption_ax.axis('off')
    caption_text = (
        "Seabird colony on Appledore Island, Isles of Shoals, and its foraging "
        "region in the Gulf of Maine. Panel (a) shades ETOPO1 bathymetry in "
        f"discrete depth bands (breaks at {', '.join(str(b) for b in DEPTH_BREAKS)} m) "
        "with fishing sites sized by mean tow abundance; the red box marks the "
        "colony. Panel (b) shows hillshaded terrain-tile elevation of the colony "
        f"(zoom {ELEVATION_ZOOM}) with everything at or below "
        f"{ELEVATION_FLOOR_M:g} m flattened to one color and nests sized by "
        "clutch size. Panel (c) shows the same nests over satellite imagery, "
        "colored by clutch size."
    )
    chars_per_line = int(caption_width * 20 / (FS_CAPTION * 0.0065))
    caption_ax.text(0.0, 1.0, textwrap.fill(caption_text, width=chars_per_line),
                    fontsize=FS_CAPTION, va='top', transform=caption_ax.transAxes,
                    family='sans-serif', linespacing=1.4)

    return save_map(fig, OUTPUT_DIR / "composite_colony_maps.png", dpi=300)


def main():
    logging.basicConfig(level=logging.INFO, format="  %(message)s")
    make_composite_map()
    print("\nDone!")


if __name__ == "__main__":
    main()
