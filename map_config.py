"""
map_config.py - Shared paths, study-area constants and styling for the map scripts

Every script in this repository reads its inputs from here. Paths, the
bathymetry source, the tile provider and the tile API key can be overridden
with SEABIRD_MAPS_* environment variables.
"""

import os
from pathlib import Path

ENV_PREFIX = "SEABIRD_MAPS_"


def _env(name, default=None):
    return os.environ.get(ENV_PREFIX + name, default)


def _env_path(name, default: Path) -> Path:
    value = _env(name)
    return Path(value).expanduser() if value else default


# === Paths ===
ROOT_DIR = Path(__file__).parent
DATA_DIR = _env_path("DATA_DIR", ROOT_DIR / "data")
NEST_SITES_PATH = _env_path("NEST_SITES", DATA_DIR / "nest_sites.csv")
FISHING_SITES_PATH = _env_path("FISHING_SITES", DATA_DIR / "fishing_sites.csv")
FISHING_ZONES_PATH = _env_path(
    "FISHING_ZONES", DATA_DIR / "fishing_zones" / "fishing_zones.shp"
)
COASTLINE_PATH = _env_path("COASTLINE", DATA_DIR / "coastline" / "coastline.shp")
OUTPUT_DIR = _env_path("OUTPUT_DIR", ROOT_DIR / "outputs" / "figures")

# === Study area: Appledore Island, Isles of Shoals ===
# (lon, lat) corners of the colony
COLONY_CORNERS = ((-70.619, 42.9842), (-70.6094, 42.9928))
DATA_CRS = "EPSG:4326"

# Gulf of Maine foraging region around the colony
REGION_CENTER = {"lon": -70.615, "lat": 42.99}
REGION_HALF_WIDTH = 0.45
REGION_HALF_HEIGHT = 0.35

# === Elevation ===
ELEVATION_ZOOM = 14
ELEVATION_FLOOR_M = 0.0  # everything at or below sea level shares one color

# === Satellite basemap ===
BASEMAP_PROVIDER = _env("TILE_PROVIDER", "Esri.WorldImagery")
BASEMAP_ZOOM = 16
BASEMAP_REGION_ZOOM = 10
BASEMAP_SIZE = (640, 640)  # pixels
TILE_API_KEY_ENV = ENV_PREFIX + "TILE_API_KEY"
TILE_API_KEY = os.environ.get(TILE_API_KEY_ENV)

# === Bathymetry ===
BATHY_URL = _env(
    "BATHY_URL", "https://www.ngdc.noaa.gov/thredds/dodsC/global/ETOPO1_Ice_g_gmt4.nc"
)
BATHY_RESOLUTION = 1  # grid cells (ETOPO1: arc-minutes)
DEPTH_BREAKS = (-200, -150, -100, -50, -25, 0)

# === Fishing zones ===
FISHING_ZONE_FIELD = "zone"
FISHING_ZONE_NAME = "Isles of Shoals"

# === Colors ===
DEPTH_COLORS = [
    "#08306B", "#08519C", "#2171B5", "#4292C6",
    "#6BAED6", "#C6DBEF", "#E5D8BD",
]
EGG_COUNT_CMAP = "YlOrRd"
ABUNDANCE_CMAP = "viridis"
ZONE_COLOR = "#D55E00"
NEST_COLOR = "#F0E442"

# === Font sizes ===
FS_PANEL_LABEL = 20
FS_SITE_LABEL = 9
FS_LEGEND = 10
FS_SCALE_BAR = 10
FS_GRIDLINE = 9
FS_NORTH_ARROW = 11
FS_COLORBAR = 12
FS_DATE_STAMP = 8
