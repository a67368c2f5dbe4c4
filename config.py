# prep_access/config.py
"""
Configuration for the PrEP transit-access pipeline.

Paths and analysis constants live here; API keys come from the environment
(GOOGLE_MAPS_API_KEY, CENSUS_API_KEY). run_pipeline.py builds a Settings
from these defaults and lets CLI flags override them.
"""
import os
from dataclasses import dataclass, field, replace
from typing import List, Optional

# === CONFIG ===
DATA_DIR       = "data"
OUT_DIR        = "results"

CENTROIDS_TXT  = f"{DATA_DIR}/CenPop2010_Mean_BG13.txt"   # needs: GEOID, COUNTYFP, LATITUDE, LONGITUDE
CLINICS_XLSX   = f"{DATA_DIR}/prep_clinics.xlsx"          # needs: Coordinates ("lat, lon")
CLINIC_COORD_COL = "Coordinates"
BLOCK_GROUPS   = "https://www2.census.gov/geo/tiger/GENZ2019/shp/cb_2019_13_bg_500k.zip"
HIGHWAYS_SHP   = None                                     # optional line overlay

CHECKPOINT_PKL = f"{OUT_DIR}/transit_checkpoint.pkl"
TRAVEL_CSV     = f"{OUT_DIR}/min_transit_times.csv"
OUT_SHP        = f"{OUT_DIR}/prep_transit_access.shp"
MAP_PNG        = f"{OUT_DIR}/prep_transit_map.png"
DEMO_PNG       = f"{OUT_DIR}/hispanic_share_map.png"

# ACS 5-year, Hispanic or Latino origin (B03003)
ACS_YEAR       = 2019
STATE_FIPS     = "13"
COUNTIES       = ["063", "067", "089", "121", "135"]      # Clayton, Cobb, DeKalb, Fulton, Gwinnett
TOTAL_VAR      = "B03003_001"
HISPANIC_VAR   = "B03003_003"

TOP_K          = 10

# Fixed departure for every transit query (local time)
DEPARTURE_DATE = "2021-03-03"
DEPARTURE_TIME = "08:00:00"
TIMEZONE       = "America/New_York"
REQUEST_TIMEOUT = None    # requests default: no timeout

MAP_FIGSIZE    = (12, 10)
MAP_DPI        = 100


@dataclass
class Settings:
    centroids_path: str = CENTROIDS_TXT
    clinics_path: str = CLINICS_XLSX
    clinic_coord_col: str = CLINIC_COORD_COL
    block_groups_path: str = BLOCK_GROUPS
    highways_path: Optional[str] = HIGHWAYS_SHP
    checkpoint_path: str = CHECKPOINT_PKL
    travel_csv_path: str = TRAVEL_CSV
    out_shp: str = OUT_SHP
    map_png: str = MAP_PNG
    demo_png: str = DEMO_PNG
    year: int = ACS_YEAR
    state: str = STATE_FIPS
    counties: Optional[List[str]] = field(default_factory=lambda: list(COUNTIES))
    total_var: str = TOTAL_VAR
    subgroup_var: str = HISPANIC_VAR
    k: int = TOP_K
    departure_date: str = DEPARTURE_DATE
    departure_time: str = DEPARTURE_TIME
    timezone: str = TIMEZONE
    timeout: Optional[float] = REQUEST_TIMEOUT
    google_api_key: Optional[str] = None
    census_api_key: Optional[str] = None

    def __post_init__(self):
        # county FIPS are 3-digit strings everywhere (ACS query, centroid and polygon filters)
        if self.counties:
            self.counties = [str(c).strip().zfill(3) for c in self.counties]

    @classmethod
    def from_env(cls, **overrides):
        base = cls(google_api_key=os.environ.get("GOOGLE_MAPS_API_KEY"),
                   census_api_key=os.environ.get("CENSUS_API_KEY"))
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(base, **overrides)
