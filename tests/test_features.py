"""Tests for vector loading, repair, cropping and subsetting."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest
import geopandas as gpd
from shapely.geometry import Polygon

from features import (
    crop_features, load_features, points_from_table, read_points,
    repair_geometries, split_features, subset_features,
)

DATA_DIR = Path(__file__).parent.parent / "data"
REGION = {'lon_min': -71.0, 'lon_max': -70.4, 'lat_min': 42.7, 'lat_max': 43.2}


class TestLoadFeatures:
    """Tests for load_features."""

    def test_stored_crs_used(self, zones, tmp_path):
        path = tmp_path / "zones.shp"
        zones.to_file(path)
        loaded = load_features(path)
        assert loaded.crs.to_epsg() == 4326
        assert list(loaded["zone"]) == list(zones["zone"])

    def test_missing_crs_requires_argument(self, zones, tmp_path):
        path = tmp_path / "no_prj.shp"
        gpd.GeoDataFrame(zones.drop(columns="geometry"), geometry=list(zones.geometry)).to_file(path)
        with pytest.raises(ValueError, match="no stored CRS"):
            load_features(path)

    def test_missing_crs_supplied(self, zones, tmp_path):
        path = tmp_path / "no_prj.shp"
        gpd.GeoDataFrame(zones.drop(columns="geometry"), geometry=list(zones.geometry)).to_file(path)
        loaded = load_features(path, crs="EPSG:4326")
        assert loaded.crs.to_epsg() == 4326

    def test_reprojects_to_requested_crs(self, zones, tmp_path):
        path = tmp_path / "utm.shp"
        zones.to_crs("EPSG:32619").to_file(path)
        loaded = load_features(path, crs="EPSG:4326")
        assert loaded.crs.to_epsg() == 4326
        np.testing.assert_allclose(loaded.total_bounds, zones.total_bounds, atol=1e-6)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="absent.shp"):
            load_features(tmp_path / "absent.shp", crs="EPSG:4326")


class TestRepairGeometries:
    """Tests for repair_geometries."""

    def test_repairs_bowtie(self, zones):
        assert not zones.is_valid.all()
        repaired = repair_geometries(zones)
        assert repaired.is_valid.all()
        assert len(repaired) == len(zones)
        assert list(repaired["zone"]) == list(zones["zone"])

    def test_valid_geometries_unchanged(self, zones):
        repaired = repair_geometries(zones)
        assert repaired.geometry.iloc[0].equals(zones.geometry.iloc[0])

    def test_idempotent(self, zones):
        once = repair_geometries(zones)
        twice = repair_geometries(once)
        assert once.geometry.geom_equals(twice.geometry).all()

    def test_input_not_modified(self, zones):
        before = list(zones.geometry.to_wkb())
        repair_geometries(zones)
        assert list(zones.geometry.to_wkb()) == before


class TestCropFeatures:
    """Tests for crop_features."""

    def test_drops_features_outside(self, zones):
        cropped = crop_features(repair_geometries(zones), REGION)
        assert set(cropped["zone"]) == {"Ipswich Bay", "Isles of Shoals"}

    def test_clips_to_window(self, zones):
        window = {'lon_min': -70.8, 'lon_max': -70.6, 'lat_min': 42.85, 'lat_max': 42.95}
        cropped = crop_features(repair_geometries(zones), window)
        minx, miny, maxx, maxy = cropped.total_bounds
        assert minx >= -70.8 - 1e-9 and maxx <= -70.6 + 1e-9
        assert miny >= 42.85 - 1e-9 and maxy <= 42.95 + 1e-9

    def test_window_in_other_crs(self, zones):
        utm = repair_geometries(zones).to_crs("EPSG:32619")
        cropped = crop_features(utm, REGION, crs="EPSG:4326")
        assert cropped.crs.to_epsg() == 32619
        assert "Penobscot" not in set(cropped["zone"])


class TestSubsetting:
    """Tests for subset_features and split_features."""

    def test_subset_exact_match(self, zones):
        subset = subset_features(zones, "zone", "Isles of Shoals")
        assert len(subset) == 1
        assert (subset["zone"] == "Isles of Shoals").all()

    def test_subset_no_partial_match(self, zones):
        assert subset_features(zones, "zone", "Isles").empty

    def test_subset_unknown_field(self, zones):
        with pytest.raises(KeyError):
            subset_features(zones, "name", "Isles of Shoals")

    def test_split_reconstructs_original(self, zones):
        extra = gpd.GeoDataFrame(
            {"zone": ["Ipswich Bay", None], "area_id": [4, 5]},
            geometry=[Polygon([(-70.9, 42.7), (-70.8, 42.7), (-70.8, 42.75)]),
                      Polygon([(-70.6, 42.7), (-70.5, 42.7), (-70.5, 42.75)])],
            crs="EPSG:4326",
        )
        features = pd.concat([zones, extra], ignore_index=True)
        parts = split_features(features, "zone")

        for value, part in parts.items():
            if pd.isna(value):
                assert part["zone"].isna().all()
            else:
                assert (part["zone"] == value).all()

        combined = pd.concat(parts.values())
        assert not combined.index.duplicated().any()
        assert sorted(combined.index) == sorted(features.index)


class TestPoints:
    """Tests for tabular point data."""

    def test_points_from_table(self):
        table = pd.DataFrame({"site": ["A", "B"], "lon": [-70.6, -70.5], "lat": [42.9, 43.0]})
        points = points_from_table(table)
        assert points.crs.to_epsg() == 4326
        assert list(points.geometry.x) == [-70.6, -70.5]
        assert list(points.geometry.y) == [42.9, 43.0]
        assert list(points["site"]) == ["A", "B"]

    def test_custom_columns(self):
        table = pd.DataFrame({"x": [-70.6], "y": [42.9]})
        points = points_from_table(table, lon="x", lat="y")
        assert points.geometry.iloc[0].x == -70.6

    def test_missing_columns(self):
        with pytest.raises(KeyError):
            points_from_table(pd.DataFrame({"lon": [-70.6]}))

    def test_read_nest_sites(self):
        nests = read_points(DATA_DIR / "nest_sites.csv")
        assert len(nests) == 10
        assert {"nest_id", "species", "eggs"} <= set(nests.columns)
        assert nests["eggs"].between(0, 3).all()
        minx, miny, maxx, maxy = nests.total_bounds
        assert -70.619 <= minx and maxx <= -70.6094
        assert 42.9842 <= miny and maxy <= 42.9928

    def test_read_fishing_sites(self):
        sites = read_points(DATA_DIR / "fishing_sites.csv")
        assert len(sites) == 8
        assert (sites["abundance"] > 0).all()
