#!/usr/bin/env python3
"""
make_fishing_zone_map.py - Fishing zones and fishing-site abundance around the colony

Reads the fishing-zone shapefile, repairs self-intersecting polygons,
crops to the foraging region and picks out the zone around the Isles of
Shoals. The zones are drawn over a regional satellite basemap with the
fishing sites sized by tow abundance.

Usage:
    uv run python make_fishing_zone_map.py
"""

import logging

from basemap import fetch_basemap, size_for_extent
from extent import extent_around, extent_center
from features import (
    load_features, repair_geometries, crop_features, subset_features, read_points,
)
from map_layers import (
    basemap_layer, polygons_layer, points_layer, render_map, save_map,
    add_scale_bar, add_north_arrow, add_gridlines, add_date_stamp, draw_neatline,
)
from map_config import (
    DATA_CRS, REGION_CENTER, REGION_HALF_WIDTH, REGION_HALF_HEIGHT,
    BASEMAP_PROVIDER, BASEMAP_REGION_ZOOM, TILE_API_KEY,
    FISHING_ZONES_PATH, FISHING_SITES_PATH, FISHING_ZONE_FIELD, FISHING_ZONE_NAME,
    OUTPUT_DIR, ZONE_COLOR, ABUNDANCE_CMAP,
)


def load_fishing_zones(extent):
    """Fishing zones ready for overlay: valid geometries inside the region."""
    zones = load_features(FISHING_ZONES_PATH, crs=DATA_CRS)
    zones = repair_geometries(zones)
    zones = crop_features(zones, extent, crs=DATA_CRS)
    print(f"  {len(zones)} zones inside the region: "
          f"{', '.join(sorted(zones[FISHING_ZONE_FIELD].astype(str).unique()))}")
    return zones


def make_fishing_zone_map():
    print("=" * 60)
    print("Fishing Zones + Fishing Sites")
    print("=" * 60)

    extent = extent_around(REGION_CENTER['lon'], REGION_CENTER['lat'],
                           REGION_HALF_WIDTH, REGION_HALF_HEIGHT)
    zones = load_fishing_zones(extent)
    shoals_zone = subset_features(zones, FISHING_ZONE_FIELD, FISHING_ZONE_NAME)
    print(f"  {FISHING_ZONE_NAME}: {len(shoals_zone)} polygon(s)")

    sites = read_points(FISHING_SITES_PATH)

    print(f"\nFetching regional basemap (zoom {BASEMAP_REGION_ZOOM})...")
    center = extent_center(extent)
    basemap = fetch_basemap(center, BASEMAP_REGION_ZOOM, provider=BASEMAP_PROVIDER,
                            style="color", api_key=TILE_API_KEY,
                            size=size_for_extent(extent, BASEMAP_REGION_ZOOM, center))

    layers = [
        basemap_layer(basemap),
        polygons_layer(zones, name="Fishing zones", facecolor="none",
                       edgecolor="white", linewidth=1.0, zorder=4),
        polygons_layer(shoals_zone, name=FISHING_ZONE_NAME, facecolor=ZONE_COLOR,
                       edgecolor=ZONE_COLOR, linewidth=2.0, alpha=0.35,
                       label_field=FISHING_ZONE_FIELD, zorder=5),
        points_layer(sites, name="Fishing sites", facecolor="white", marker="s",
                     size_field="abundance", size_range=(20, 260),
                     color_field="abundance", cmap=ABUNDANCE_CMAP,
                     label_field="site", label_offset=(8, -10)),
    ]
    fig, ax = render_map(layers, extent=extent, figsize=(11, 10),
                         title="Fishing zones and tow abundance")

    add_gridlines(ax)
    add_scale_bar(ax, 10, n_segments=5)
    add_north_arrow(ax)
    add_date_stamp(ax, f"Web Mercator, {basemap.provider}")
    draw_neatline(ax, n_segments=12, linewidth=5)

    return save_map(fig, OUTPUT_DIR / "fishing_zones_abundance.png")


def main():
    logging.basicConfig(level=logging.INFO, format="  %(message)s")
    make_fishing_zone_map()
    print("\nDone!")


if __name__ == "__main__":
    main()
