"""Tests for elevation fetching, tabulation and clamping."""

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
import xarray as xr
from pyproj import Transformer

from conftest import encode_terrarium
from elevation import (
    TERRARIUM, clamp_elevation, decode_terrarium, fetch_elevation,
    raster_to_table, table_to_grid,
)
from extent import extent_bounds

_TO_MERCATOR = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


class TestDecodeTerrarium:
    """Tests for Terrarium RGB decoding."""

    def test_known_values(self):
        img = encode_terrarium(np.array([[0.0, 10.5, -32.25, 120.0]]))
        assert decode_terrarium(img) == pytest.approx(np.array([[0.0, 10.5, -32.25, 120.0]]))

    def test_alpha_band_ignored(self):
        rgb = encode_terrarium(np.array([[3.0]]))
        rgba = np.concatenate([rgb, np.full((1, 1, 1), 255, dtype=np.uint8)], axis=-1)
        assert decode_terrarium(rgba)[0, 0] == pytest.approx(3.0)


class TestFetchElevation:
    """Tests for fetch_elevation against a synthetic tile mosaic."""

    def test_request_uses_lonlat_bounds_and_zoom(self, colony_corners, fake_terrain_tiles):
        fetch_elevation(colony_corners, zoom=14)
        call = fake_terrain_tiles[0]
        assert call["zoom"] == 14
        assert call["ll"] is True
        assert call["source"] is TERRARIUM
        assert call["bounds"] == pytest.approx((-70.619, 42.9842, -70.6094, 42.9928))

    def test_cropped_grid_inside_extent(self, colony_corners, fake_terrain_tiles):
        grid = fetch_elevation(colony_corners, zoom=14, clip="bbox")
        extent = extent_bounds(colony_corners)

        assert grid.sizes["x"] > 0 and grid.sizes["y"] > 0
        assert grid.x.min() >= extent['lon_min']
        assert grid.x.max() <= extent['lon_max']
        assert grid.y.min() >= extent['lat_min']
        assert grid.y.max() <= extent['lat_max']

    def test_tile_mode_keeps_padding(self, colony_corners, fake_terrain_tiles):
        grid = fetch_elevation(colony_corners, zoom=14, clip="tile")
        assert grid.shape == (64, 64)
        assert grid.x.min() < extent_bounds(colony_corners)['lon_min']

    def test_refetch_same_shape_and_bounds(self, colony_corners, fake_terrain_tiles):
        first = fetch_elevation(colony_corners, zoom=14)
        second = fetch_elevation(colony_corners, zoom=14)
        assert first.shape == second.shape
        np.testing.assert_allclose(first.x, second.x)
        np.testing.assert_allclose(first.y, second.y)

    def test_grid_metadata(self, colony_corners, fake_terrain_tiles):
        grid = fetch_elevation(colony_corners, zoom=14)
        assert grid.dims == ("y", "x")
        assert grid.attrs["crs"] == "EPSG:4326"
        assert grid.attrs["zoom"] == 14
        # y runs north to south
        assert grid.y.values[0] > grid.y.values[-1]

    def test_decoded_values(self, colony_corners, fake_terrain_tiles):
        grid = fetch_elevation(colony_corners, zoom=14, clip="tile")
        assert float(grid.min()) == pytest.approx(-5.0, abs=0.01)
        assert float(grid.max()) == pytest.approx(20.0, abs=0.01)

    def test_bad_clip_mode(self, colony_corners, fake_terrain_tiles):
        with pytest.raises(ValueError, match="clip"):
            fetch_elevation(colony_corners, clip="locations")

    @pytest.mark.parametrize("zoom", [-1, 16])
    def test_zoom_out_of_range(self, colony_corners, fake_terrain_tiles, zoom):
        with pytest.raises(ValueError, match="zoom"):
            fetch_elevation(colony_corners, zoom=zoom)
        assert fake_terrain_tiles == []

    def test_points_without_crs(self, fake_terrain_tiles):
        bare = gpd.GeoDataFrame(geometry=gpd.points_from_xy([-70.619, -70.6094], [42.9842, 42.9928]))
        with pytest.raises(ValueError, match="CRS"):
            fetch_elevation(bare)

    def test_extent_smaller_than_one_pixel(self, colony_corners, monkeypatch):
        import elevation

        def one_coarse_tile(w, s, e, n, zoom="auto", source=None, ll=False, **kwargs):
            # One zoom-6 tile; the colony center sits on a pixel corner
            x, y = _TO_MERCATOR.transform((w + e) / 2, (s + n) / 2)
            px = 2445.98
            img = encode_terrarium(np.zeros((256, 256)))
            return img, (x - 16 * px, x + 240 * px, y - 248 * px, y + 8 * px)

        monkeypatch.setattr(elevation.ctx, "bounds2img", one_coarse_tile)
        with pytest.raises(ValueError, match="smaller than one pixel at zoom 6"):
            fetch_elevation(colony_corners, zoom=6, clip="bbox")

    def test_coarse_tile_mode_still_returns_mosaic(self, colony_corners, monkeypatch):
        import elevation

        def one_coarse_tile(w, s, e, n, zoom="auto", source=None, ll=False, **kwargs):
            x, y = _TO_MERCATOR.transform((w + e) / 2, (s + n) / 2)
            return encode_terrarium(np.zeros((4, 4))), (x - 5e4, x + 5e4, y - 5e4, y + 5e4)

        monkeypatch.setattr(elevation.ctx, "bounds2img", one_coarse_tile)
        grid = fetch_elevation(colony_corners, zoom=6, clip="tile")
        assert grid.shape == (4, 4)


class TestRasterToTable:
    """Tests for grid flattening."""

    def test_drops_missing_samples(self):
        grid = xr.DataArray(
            np.array([[1.0, np.nan], [3.0, 4.0]]),
            dims=("y", "x"),
            coords={"y": [43.0, 42.9], "x": [-70.62, -70.61]},
            name="elevation",
        )
        table = raster_to_table(grid)
        assert list(table.columns) == ["x", "y", "value"]
        assert len(table) == 3
        assert not table["value"].isna().any()

    def test_table_to_grid_orders_axes(self):
        table = pd.DataFrame({
            "x": [-70.61, -70.62, -70.61, -70.62],
            "y": [43.0, 43.0, 42.9, 42.9],
            "value": [2.0, 1.0, 4.0, 3.0],
        })
        x, y, z = table_to_grid(table)
        np.testing.assert_allclose(x, [-70.62, -70.61])
        np.testing.assert_allclose(y, [42.9, 43.0])
        np.testing.assert_allclose(z, [[3.0, 4.0], [1.0, 2.0]])


class TestClampElevation:
    """Tests for the sea-level clamp."""

    def test_boundary_inclusive(self):
        values = np.array([-3.0, 0.0, 1e-6, 5.0])
        np.testing.assert_array_equal(clamp_elevation(values, threshold=0.0),
                                      [0.0, 0.0, 1e-6, 5.0])

    def test_values_above_threshold_untouched(self):
        values = np.array([1.5, 2.0, 2.0001, 40.0])
        np.testing.assert_array_equal(clamp_elevation(values, threshold=2.0),
                                      [2.0, 2.0, 2.0001, 40.0])

    def test_nan_preserved(self):
        out = clamp_elevation(np.array([np.nan, -1.0]))
        assert np.isnan(out[0])
        assert out[1] == 0.0

    def test_replacement_value(self):
        out = clamp_elevation(np.array([-2.0, 3.0]), threshold=0.0, replacement=-1.0)
        np.testing.assert_array_equal(out, [-1.0, 3.0])

    def test_series_in_series_out(self):
        series = pd.Series([-1.0, np.nan, 7.0], index=[10, 11, 12])
        out = clamp_elevation(series)
        assert isinstance(out, pd.Series)
        assert list(out.index) == [10, 11, 12]
        assert out[10] == 0.0 and np.isnan(out[11]) and out[12] == 7.0

    def test_dataarray_in_dataarray_out(self):
        grid = xr.DataArray([[-4.0, 2.0], [0.0, np.nan]], dims=("y", "x"))
        out = clamp_elevation(grid)
        assert isinstance(out, xr.DataArray)
        np.testing.assert_array_equal(out.values, [[0.0, 2.0], [0.0, np.nan]])
