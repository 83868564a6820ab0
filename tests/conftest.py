"""Pytest configuration and fixtures for the map tests."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
import geopandas as gpd
from pyproj import Transformer
from shapely.geometry import Polygon

from extent import build_extent

COLONY_CORNERS = ((-70.619, 42.9842), (-70.6094, 42.9928))

_TO_MERCATOR = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


def encode_terrarium(elevation):
    """Terrarium RGB bytes for an elevation array (meters)."""
    v = np.asarray(elevation, dtype=float) + 32768.0
    r = np.floor(v / 256.0)
    g = np.floor(v - r * 256.0)
    b = np.floor((v - np.floor(v)) * 256.0)
    return np.stack([r, g, b], axis=-1).astype(np.uint8)


@pytest.fixture
def colony_corners():
    """Two-point extent for the Appledore Island colony."""
    return build_extent(*COLONY_CORNERS)


@pytest.fixture
def fake_terrain_tiles(monkeypatch):
    """Replace the tile download with a 64x64 synthetic mosaic around the request.

    Elevation rises west to east from -5 m to 20 m. Returns the list of
    calls so tests can inspect the requests.
    """
    import elevation

    calls = []

    def bounds2img(w, s, e, n, zoom="auto", source=None, ll=False, **kwargs):
        calls.append({"bounds": (w, s, e, n), "zoom": zoom, "source": source, "ll": ll})
        if ll:
            (w, e), (s, n) = _TO_MERCATOR.transform([w, e], [s, n])
        pad = 300.0
        extent = (w - pad, e + pad, s - pad, n + pad)
        profile = np.linspace(-5.0, 20.0, 64)
        img = encode_terrarium(np.tile(profile, (64, 1)))
        return img, extent

    monkeypatch.setattr(elevation.ctx, "bounds2img", bounds2img)
    return calls


@pytest.fixture
def zones():
    """Three fishing zones; the middle one is a self-intersecting bowtie."""
    square_a = Polygon([(-70.9, 42.8), (-70.7, 42.8), (-70.7, 43.0), (-70.9, 43.0)])
    bowtie = Polygon([(-70.7, 42.8), (-70.5, 43.0), (-70.5, 42.8), (-70.7, 43.0)])
    far_away = Polygon([(-69.0, 44.0), (-68.8, 44.0), (-68.8, 44.2), (-69.0, 44.2)])
    return gpd.GeoDataFrame(
        {"zone": ["Ipswich Bay", "Isles of Shoals", "Penobscot"], "area_id": [1, 2, 3]},
        geometry=[square_a, bowtie, far_away],
        crs="EPSG:4326",
    )
