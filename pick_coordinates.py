#!/usr/bin/env python3
"""
pick_coordinates.py - Click nest locations on the colony satellite basemap

Left-click drops a numbered marker, right-click takes the latest one back.
When the window closes the picks are printed as nest_sites.csv rows, with
species and eggs left blank for filling in from the field notebook.

Usage:
    uv run python pick_coordinates.py
"""

import sys

import pandas as pd
import matplotlib.pyplot as plt
import cartopy.crs as ccrs

from basemap import fetch_basemap
from extent import build_extent, extent_bounds, extent_center
from features import read_points
from map_layers import basemap_layer, points_layer, render_map
from map_config import (
    COLONY_CORNERS, DATA_CRS, BASEMAP_PROVIDER, BASEMAP_ZOOM, TILE_API_KEY,
    NEST_SITES_PATH, NEST_COLOR,
)

GEODETIC = ccrs.PlateCarree()
LEFT, RIGHT = 1, 3


class NestPicker:
    """Collects clicked lon/lat pairs and the artists marking them."""

    def __init__(self, ax, prefix="P"):
        self.ax = ax
        self.prefix = prefix
        self.picks = []
        self._artists = []

    def __call__(self, event):
        if event.inaxes is not self.ax:
            return
        if event.button == RIGHT:
            self.undo()
        elif event.button == LEFT:
            self.add(event.xdata, event.ydata)

    def add(self, x, y):
        # Clicks arrive in the axes' display projection
        lon, lat = GEODETIC.transform_point(x, y, self.ax.projection)
        self.picks.append((lon, lat))
        n = len(self.picks)
        marker, = self.ax.plot(x, y, marker='+', color='red', markersize=16,
                               markeredgewidth=2.5, zorder=30)
        tag = self.ax.text(x, y, f' {self.prefix}{n:02d}', color='red', fontsize=11,
                           fontweight='bold', va='bottom', zorder=30)
        self._artists.append((marker, tag))
        self.ax.figure.canvas.draw_idle()
        print(f"  {self.prefix}{n:02d}: {lon:.6f}, {lat:.6f}")

    def undo(self):
        if not self.picks:
            return
        self.picks.pop()
        for artist in self._artists.pop():
            artist.remove()
        self.ax.figure.canvas.draw_idle()
        print(f"  undo -> {len(self.picks)} point(s)")

    def to_table(self) -> pd.DataFrame:
        return pd.DataFrame({
            'nest_id': [f"{self.prefix}{i:02d}" for i in range(1, len(self.picks) + 1)],
            'species': "",
            'lon': [round(lon, 6) for lon, _ in self.picks],
            'lat': [round(lat, 6) for _, lat in self.picks],
            'eggs': "",
        })


def main():
    print("=" * 60)
    print("Nest Coordinate Picker")
    print("=" * 60)
    print("  left-click adds, right-click undoes, close the window to finish")

    corners = build_extent(*COLONY_CORNERS, crs=DATA_CRS)
    extent = extent_bounds(corners)
    basemap = fetch_basemap(extent_center(extent), BASEMAP_ZOOM, provider=BASEMAP_PROVIDER,
                            style="color", api_key=TILE_API_KEY)
    known = read_points(NEST_SITES_PATH)
    layers = [
        basemap_layer(basemap),
        points_layer(known, name="Known nests", facecolor=NEST_COLOR, size=70,
                     label_field="nest_id", label_offset=(8, 4)),
    ]
    fig, ax = render_map(layers, extent=extent, figsize=(12, 12),
                         title="Click new nests (known nests shown for reference)")

    picker = NestPicker(ax)
    fig.canvas.mpl_connect('button_press_event', picker)
    plt.show()

    print("\n" + "=" * 60)
    if not picker.picks:
        print("Nothing picked.")
        return
    print(f"{len(picker.picks)} point(s); paste into {NEST_SITES_PATH.name}:\n")
    picker.to_table().to_csv(sys.stdout, index=False)


if __name__ == "__main__":
    main()
