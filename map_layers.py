"""
map_layers.py - Layer stack and map furniture shared by the make_*.py scripts

A map is a list of Layer objects drawn in zorder onto one cartopy GeoAxes.
Each layer keeps the CRS of its own data and cartopy transforms it into the
display projection, so a Web Mercator satellite image, a lon/lat elevation
grid and a projected shapefile can share one map.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable

import numpy as np
import pandas as pd
import matplotlib
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
from matplotlib.colors import LightSource, ListedColormap, BoundaryNorm, Normalize
from matplotlib.lines import Line2D
import cartopy.crs as ccrs
from cartopy.mpl.ticker import LongitudeFormatter, LatitudeFormatter
from pyproj import CRS, Geod

from bathymetry import depth_band_grid, depth_labels
from elevation import table_to_grid
from extent import extent_to_list
from map_config import (
    DEPTH_BREAKS, DEPTH_COLORS,
    FS_PANEL_LABEL, FS_SITE_LABEL, FS_LEGEND, FS_SCALE_BAR, FS_GRIDLINE,
    FS_NORTH_ARROW, FS_COLORBAR, FS_DATE_STAMP,
)

logger = logging.getLogger(__name__)

GEOD = Geod(ellps="WGS84")


@dataclass
class Layer:
    """One drawable layer: its data CRS, a draw(ax, transform) callable, legend handles."""
    name: str
    crs: ccrs.CRS
    draw: Callable
    zorder: int = 1
    legend: list = field(default_factory=list)
    colorscale: tuple = None  # (cmap, vmin, vmax) for layers that want a colorbar


def to_cartopy_crs(crs) -> ccrs.CRS:
    """Cartopy CRS for anything pyproj understands.

    Geographic CRSs other than WGS84 (NAD83 shapefiles, say) become a
    PlateCarree on their own ellipsoid; ccrs.epsg() only takes projected codes.
    """
    if isinstance(crs, ccrs.CRS):
        return crs
    if crs is None:
        raise ValueError("Layer data has no CRS")
    crs = CRS.from_user_input(crs)
    epsg = crs.to_epsg()
    if epsg == 4326:
        return ccrs.PlateCarree()
    if epsg == 3857:
        return ccrs.GOOGLE_MERCATOR
    if crs.is_geographic:
        ellipsoid = crs.ellipsoid
        globe = ccrs.Globe(ellipse=None, semimajor_axis=ellipsoid.semi_major_metre,
                           semiminor_axis=ellipsoid.semi_minor_metre)
        return ccrs.PlateCarree(globe=globe)
    if epsg is None:
        return ccrs.Projection(crs)
    return ccrs.epsg(epsg)


def _colormap(cmap):
    return matplotlib.colormaps[cmap] if isinstance(cmap, str) else cmap


# ─── Styling scales ───────────────────────────────────────────────────────────

def scale_sizes(values, size_range=(30, 300), discrete=False):
    """Map a data field to marker areas.

    Parameters
    ----------
    values : array-like
        Field values, one per point.
    size_range : tuple of float
        Smallest and largest marker area (points^2).
    discrete : bool
        Treat values as categories (counts such as eggs per nest): each
        distinct value gets its own evenly spaced size. Otherwise values are
        scaled linearly into size_range.

    Returns
    -------
    sizes : np.ndarray
        Marker area per point (NaN where the value is missing).
    legend : list of (label, size)
    """
    values = pd.Series(values).reset_index(drop=True)
    lo, hi = size_range
    mid = (lo + hi) / 2

    if discrete:
        categories = sorted(values.dropna().unique())
        steps = np.linspace(lo, hi, len(categories)) if len(categories) > 1 else [mid]
        lookup = dict(zip(categories, steps))
        sizes = values.map(lookup).to_numpy(dtype=float)
        return sizes, [(str(cat), float(size)) for cat, size in lookup.items()]

    numeric = values.astype(float)
    vmin, vmax = numeric.min(), numeric.max()
    if not vmax > vmin:
        return np.full(len(numeric), mid), [(f"{vmin:g}", mid)]
    sizes = (lo + (hi - lo) * (numeric - vmin) / (vmax - vmin)).to_numpy()
    ticks = np.linspace(vmin, vmax, 3)
    return sizes, [(f"{t:g}", lo + (hi - lo) * (t - vmin) / (vmax - vmin)) for t in ticks]


def scale_colors(values, cmap="viridis", discrete=False):
    """Map a data field to RGBA colors.

    Discrete fields get one color per distinct value, sampled evenly from
    the colormap; continuous fields go through a linear Normalize.
    Returns (colors, legend) with legend as (label, color) pairs.
    """
    values = pd.Series(values).reset_index(drop=True)
    colormap = _colormap(cmap)

    if discrete:
        categories = sorted(values.dropna().unique())
        stops = np.linspace(0.15, 1.0, len(categories)) if len(categories) > 1 else [0.6]
        lookup = {cat: tuple(colormap(stop)) for cat, stop in zip(categories, stops)}
        colors = np.array([lookup.get(v, (0.0, 0.0, 0.0, 0.0)) for v in values])
        return colors, [(str(cat), color) for cat, color in lookup.items()]

    numeric = values.astype(float)
    norm = Normalize(vmin=numeric.min(), vmax=numeric.max())
    colors = colormap(norm(numeric.to_numpy()))
    ticks = np.unique(np.linspace(norm.vmin, norm.vmax, 3))
    return colors, [(f"{t:g}", tuple(colormap(norm(t)))) for t in ticks]


# ─── Layer factories ──────────────────────────────────────────────────────────

def elevation_layer(table, name="elevation", cmap="terrain", hillshade=True,
                    vmin=None, vmax=None, zorder=0) -> Layer:
    """Elevation from an x, y, value table (lon/lat), optionally hillshaded."""
    x, y, z = table_to_grid(table)
    z_min = float(np.nanmin(z)) if vmin is None else vmin
    z_max = float(np.nanmax(z)) if vmax is None else vmax
    if z_max <= z_min:
        z_max = z_min + 1.0
    colormap = _colormap(cmap)

    def draw(ax, transform):
        if not hillshade:
            return ax.pcolormesh(x, y, z, cmap=colormap, vmin=z_min, vmax=z_max,
                                 shading='auto', transform=transform, zorder=zorder)
        ls = LightSource(azdeg=315, altdeg=45)
        rgb = ls.shade(np.where(np.isnan(z), z_min, z), cmap=colormap, blend_mode='soft',
                       vmin=z_min, vmax=z_max)
        dx = (x[-1] - x[0]) / max(len(x) - 1, 1)
        dy = (y[-1] - y[0]) / max(len(y) - 1, 1)
        return ax.imshow(rgb, extent=[x[0] - dx / 2, x[-1] + dx / 2, y[0] - dy / 2, y[-1] + dy / 2],
                         origin='lower', transform=transform, zorder=zorder)

    return Layer(name, ccrs.PlateCarree(), draw, zorder, colorscale=(colormap, z_min, z_max))


def basemap_layer(basemap, name="basemap", zorder=0) -> Layer:
    """Pre-rendered tile image anchored to its Web Mercator extent."""
    left, right, bottom, top = basemap.extent

    def draw(ax, transform):
        return ax.imshow(basemap.image, extent=[left, right, bottom, top], origin='upper',
                         transform=transform, interpolation='bilinear', zorder=zorder)

    return Layer(name, to_cartopy_crs(basemap.crs), draw, zorder)


def depth_layer(depth, breaks=DEPTH_BREAKS, colors=DEPTH_COLORS, name="depth",
                contours=True, zorder=0) -> Layer:
    """Depth bands as flat fills, one color per band, with optional break contours."""
    labels = depth_labels(breaks)
    if len(colors) != len(labels):
        raise ValueError(f"Need {len(labels)} colors for {len(breaks)} breaks, got {len(colors)}")
    bands = np.ma.masked_less(depth_band_grid(depth, breaks).values, 0)
    cmap = ListedColormap(colors)
    norm = BoundaryNorm(np.arange(-0.5, len(colors)), cmap.N)
    x = depth['x'].values
    y = depth['y'].values
    z = depth.values

    def draw(ax, transform):
        mesh = ax.pcolormesh(x, y, bands, cmap=cmap, norm=norm, shading='auto',
                             transform=transform, zorder=zorder)
        if contours:
            ax.contour(x, y, z, levels=sorted(breaks), colors='black',
                       linewidths=0.3, alpha=0.5, transform=transform, zorder=zorder + 1)
        return mesh

    legend = [mpatches.Patch(facecolor=color, edgecolor='black', linewidth=0.5, label=label)
              for color, label in zip(colors, labels)]
    return Layer(name, to_cartopy_crs(depth.attrs.get('crs', 'EPSG:4326')), draw, zorder, legend)


def points_layer(points, name="points", marker="o", facecolor="white", edgecolor="black",
                 size=60, size_field=None, size_range=(30, 300), size_discrete=False,
                 color_field=None, cmap="viridis", color_discrete=False,
                 label_field=None, label_offset=(6, 6), label_color="black",
                 zorder=10) -> Layer:
    """Point markers with optional size/color scales and text labels.

    Counts (eggs per nest) should pass ``size_discrete=True`` or
    ``color_discrete=True`` so each count gets its own step; continuous
    fields (tow abundance) are scaled linearly.
    """
    xs = points.geometry.x.to_numpy()
    ys = points.geometry.y.to_numpy()

    if size_field is not None:
        sizes, size_legend = scale_sizes(points[size_field], size_range, size_discrete)
    else:
        sizes, size_legend = np.full(len(points), float(size)), []
    if color_field is not None:
        colors, color_legend = scale_colors(points[color_field], cmap, color_discrete)
    else:
        colors, color_legend = facecolor, []
    labels = points[label_field].astype(str).tolist() if label_field else []

    legend = []
    size_fill = 'lightgray' if color_field is not None else facecolor
    for text, area in size_legend:
        legend.append(Line2D([0], [0], marker=marker, linestyle='None',
                             markerfacecolor=size_fill, markeredgecolor=edgecolor,
                             markersize=np.sqrt(area), label=f"{size_field}: {text}"))
    for text, color in color_legend:
        legend.append(Line2D([0], [0], marker=marker, linestyle='None',
                             markerfacecolor=color, markeredgecolor=edgecolor,
                             markersize=8, label=f"{color_field}: {text}"))
    if not legend:
        legend.append(Line2D([0], [0], marker=marker, linestyle='None',
                             markerfacecolor=facecolor, markeredgecolor=edgecolor,
                             markersize=8, label=name))

    def draw(ax, transform):
        artist = ax.scatter(xs, ys, s=sizes, c=colors, marker=marker, edgecolors=edgecolor,
                            linewidths=1.0, transform=transform, zorder=zorder)
        for x, y, text in zip(xs, ys, labels):
            ax.annotate(text, (x, y), xycoords=transform._as_mpl_transform(ax),
                        xytext=label_offset, textcoords='offset points',
                        fontsize=FS_SITE_LABEL, fontweight='bold', color=label_color,
                        bbox=dict(boxstyle='round,pad=0.2', facecolor='white',
                                  alpha=0.8, edgecolor='none'),
                        zorder=zorder + 1)
        return artist

    return Layer(name, to_cartopy_crs(points.crs), draw, zorder, legend)


def polygons_layer(features, name="polygons", facecolor="none", edgecolor="black",
                   linewidth=1.5, alpha=1.0, fill_field=None, cmap="tab10",
                   fill_discrete=True, label_field=None, zorder=5) -> Layer:
    """Polygon outlines/fills, optionally colored by an attribute and labeled."""
    geoms = list(features.geometry)
    if fill_field is not None:
        fills, fill_legend = scale_colors(features[fill_field], cmap, fill_discrete)
        legend = [mpatches.Patch(facecolor=color, edgecolor=edgecolor, alpha=alpha, label=text)
                  for text, color in fill_legend]
    else:
        fills = [facecolor] * len(geoms)
        legend = [mpatches.Patch(facecolor=facecolor, edgecolor=edgecolor, label=name)]
    labels = features[label_field].astype(str).tolist() if label_field else []

    def draw(ax, transform):
        for geom, fill in zip(geoms, fills):
            ax.add_geometries([geom], crs=transform, facecolor=fill, edgecolor=edgecolor,
                              linewidth=linewidth, alpha=alpha, zorder=zorder)
        for geom, text in zip(geoms, labels):
            anchor = geom.representative_point()
            ax.text(anchor.x, anchor.y, text, transform=transform, ha='center', va='center',
                    fontsize=FS_SITE_LABEL, fontweight='bold', style='italic',
                    zorder=zorder + 1,
                    bbox=dict(boxstyle='round,pad=0.2', facecolor='white', alpha=0.8))

    return Layer(name, to_cartopy_crs(features.crs), draw, zorder, legend)


# ─── Rendering ────────────────────────────────────────────────────────────────

def render_map(layers, projection=None, extent=None, ax=None, figsize=(10, 10),
               title=None, legend_loc='lower right'):
    """Draw a layer stack onto one GeoAxes.

    Parameters
    ----------
    layers : list of Layer
        Drawn in ascending zorder; ties keep list order.
    projection : cartopy CRS, optional
        Display projection; defaults to the first layer's CRS.
    extent : dict, optional
        lon_min/lon_max/lat_min/lat_max override for the visible window.
    ax : GeoAxes, optional
        Draw into an existing axes (composite figures).

    Returns
    -------
    (fig, ax)
    """
    if projection is None:
        projection = layers[0].crs if layers else ccrs.PlateCarree()
    if ax is None:
        fig = plt.figure(figsize=figsize)
        ax = fig.add_subplot(1, 1, 1, projection=projection)
    else:
        fig = ax.figure

    handles = []
    for layer in sorted(layers, key=lambda lyr: lyr.zorder):
        if layer.crs is None:
            raise ValueError(f"Layer {layer.name!r} has no CRS")
        logger.info("Drawing layer %s", layer.name)
        layer.draw(ax, layer.crs)
        handles.extend(layer.legend)

    if extent is not None:
        ax.set_extent(extent_to_list(extent), crs=ccrs.PlateCarree())
    if title:
        ax.set_title(title, fontsize=FS_PANEL_LABEL, fontweight='bold', pad=10)
    if handles and legend_loc:
        ax.legend(handles=handles, loc=legend_loc, fontsize=FS_LEGEND,
                  framealpha=0.95, edgecolor='black',
                  borderpad=0.4, labelspacing=0.3, handletextpad=0.4)
    return fig, ax


def save_map(fig, path, dpi=300):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    print(f"\nSaving to {path}...")
    fig.savefig(path, dpi=dpi, facecolor='white', bbox_inches='tight')
    plt.close(fig)
    print(f"Saved: {path}")
    return path


# ─── Map furniture ────────────────────────────────────────────────────────────

def draw_neatline(ax, n_segments=12, linewidth=5):
    """Alternating black/white ladder border around the axes."""
    x0, x1 = ax.get_xlim()
    y0, y1 = ax.get_ylim()
    edges = [((x0, y0), (x1, y0)), ((x0, y1), (x1, y1)),
             ((x0, y0), (x0, y1)), ((x1, y0), (x1, y1))]
    style = dict(transform=ax.transData, clip_on=False, solid_capstyle='butt')

    for (ax0, ay0), (ax1, ay1) in edges:
        ax.plot([ax0, ax1], [ay0, ay1], color='black', linewidth=linewidth + 2,
                zorder=19, **style)
        fractions = np.linspace(0, 1, n_segments + 1)
        for i, (f0, f1) in enumerate(zip(fractions[:-1], fractions[1:])):
            ax.plot([ax0 + f0 * (ax1 - ax0), ax0 + f1 * (ax1 - ax0)],
                    [ay0 + f0 * (ay1 - ay0), ay0 + f1 * (ay1 - ay0)],
                    color='black' if i % 2 == 0 else 'white',
                    linewidth=linewidth, zorder=20, **style)


def add_scale_bar(ax, length_km, location=(0.05, 0.05), n_segments=4, linewidth=6):
    """Segmented scale bar of ``length_km`` measured on the WGS84 ellipsoid.

    ``location`` is the left end in axes fraction.
    """
    x0, x1 = ax.get_xlim()
    y0, y1 = ax.get_ylim()
    start_x = x0 + (x1 - x0) * location[0]
    start_y = y0 + (y1 - y0) * location[1]

    geodetic = ccrs.PlateCarree()
    lon, lat = geodetic.transform_point(start_x, start_y, ax.projection)
    end_lon, _, _ = GEOD.fwd(lon, lat, 90, length_km * 1000)
    end_x, _ = ax.projection.transform_point(end_lon, lat, geodetic)

    seg = (end_x - start_x) / n_segments
    ax.plot([start_x, end_x], [start_y, start_y], color='black', linewidth=linewidth + 2,
            solid_capstyle='butt', transform=ax.transData, zorder=14)
    for i in range(n_segments):
        ax.plot([start_x + i * seg, start_x + (i + 1) * seg], [start_y, start_y],
                color='black' if i % 2 == 0 else 'white', linewidth=linewidth,
                solid_capstyle='butt', transform=ax.transData, zorder=15)

    label_y = start_y + (y1 - y0) * 0.015
    for value, x in ((0, start_x), (length_km, end_x)):
        text = f"{value:g} km" if value else "0"
        ax.text(x, label_y, text, ha='center', va='bottom', fontsize=FS_SCALE_BAR,
                fontweight='bold', transform=ax.transData, zorder=15,
                bbox=dict(boxstyle='round,pad=0.1', facecolor='white', alpha=0.8,
                          edgecolor='none'))


def add_north_arrow(ax, x=0.92, y=0.95, length=0.07):
    ax.annotate('N', xy=(x, y), xytext=(x, y - length),
                xycoords='axes fraction', textcoords='axes fraction',
                fontsize=FS_NORTH_ARROW, fontweight='bold', ha='center', va='bottom',
                arrowprops=dict(arrowstyle='->', color='black', lw=2),
                zorder=15,
                bbox=dict(boxstyle='round,pad=0.2', facecolor='white', alpha=0.9))


def add_date_stamp(ax, crs_label="WGS84"):
    """Date/projection stamp at the bottom-right of a map panel."""
    stamp = f"Map updated: {date.today().strftime('%Y-%m-%d')}, {crs_label}"
    ax.text(0.98, 0.02, stamp, ha='right', va='bottom', fontsize=FS_DATE_STAMP,
            transform=ax.transAxes, zorder=15,
            bbox=dict(boxstyle='round,pad=0.2', facecolor='white', alpha=0.9))


def add_panel_label(ax, text):
    """Panel label + title inside the upper-left of the axes."""
    ax.text(0.02, 0.97, text, transform=ax.transAxes,
            fontsize=FS_PANEL_LABEL, fontweight='bold', va='top', ha='left',
            zorder=15,
            bbox=dict(boxstyle='round,pad=0.3', facecolor='white',
                      alpha=0.92, edgecolor='black', linewidth=1))


def add_gridlines(ax, color='white'):
    gl = ax.gridlines(crs=ccrs.PlateCarree(), draw_labels=True,
                      linewidth=0.5, color=color, alpha=0.4, linestyle='--')
    gl.top_labels = False
    gl.right_labels = False
    gl.xformatter = LongitudeFormatter()
    gl.yformatter = LatitudeFormatter()
    gl.xlabel_style = {'size': FS_GRIDLINE, 'rotation': 0}
    gl.ylabel_style = {'size': FS_GRIDLINE}
    return gl


def add_colorbar(fig, ax, colorscale, label, cax=None):
    """Colorbar for a layer's (cmap, vmin, vmax) colorscale."""
    cmap, vmin, vmax = colorscale
    sm = plt.cm.ScalarMappable(cmap=cmap, norm=Normalize(vmin=vmin, vmax=vmax))
    sm.set_array([])
    if cax is not None:
        cbar = fig.colorbar(sm, cax=cax)
    else:
        cbar = fig.colorbar(sm, ax=ax, shrink=0.7, pad=0.08)
    cbar.set_label(label, fontsize=FS_COLORBAR)
    cbar.ax.tick_params(labelsize=FS_LEGEND)
    return cbar
