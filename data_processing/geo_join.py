# prep_access/data_processing/geo_join.py
from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd

from utils.log import stamp

# DBF field names are capped at 10 characters
SHP_COLUMNS = {"GEOID": "GEOID", "total_pop": "total_pop", "pct_hispanic": "pct_hisp", "min_travel_min": "min_time"}

def read_block_groups(path, counties=None):
    """Block-group polygons (shapefile, zip or GeoJSON) keyed by GEOID, in EPSG:4326."""
    gdf = gpd.read_file(path)
    if "GEOID" not in gdf.columns:
        raise ValueError(f"Geometry file must contain a GEOID column; got {gdf.columns[:10].tolist()}")
    gdf["GEOID"] = gdf["GEOID"].astype(str)
    if counties:
        county = gdf["COUNTYFP"].astype(str) if "COUNTYFP" in gdf.columns else gdf["GEOID"].str[2:5]
        gdf = gdf[county.isin([str(c).zfill(3) for c in counties])]
    if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
        gdf = gdf.to_crs(epsg=4326)
    return gdf[["GEOID", "geometry"]].reset_index(drop=True)

def normalize_travel_times(df, col="min_travel_min"):
    """Non-finite minutes become NaN so binning never sees ±inf."""
    out = df.copy()
    vals = pd.to_numeric(out[col], errors="coerce").astype(float)
    out[col] = vals.where(np.isfinite(vals))
    return out

def join_geometries(block_groups, demographics, centroids, travel_times):
    """
    Left-join attributes onto polygons by GEOID.

    The polygon table drives the join: every output row has a geometry, and
    centroids or travel times without a matching polygon are dropped.
    """
    tt = normalize_travel_times(travel_times)
    demo_cols = [c for c in ["GEOID", "total_pop", "hispanic_pop", "pct_hispanic"] if c in demographics.columns]
    cent_cols = [c for c in ["GEOID", "COUNTYFP", "lat", "lon", "coords"] if c in centroids.columns]
    out = (block_groups.merge(demographics[demo_cols].drop_duplicates("GEOID"), on="GEOID", how="left")
                       .merge(centroids[cent_cols].drop_duplicates("GEOID"), on="GEOID", how="left")
                       .merge(tt[["GEOID", "min_travel_min"]].drop_duplicates("GEOID"), on="GEOID", how="left"))
    out = gpd.GeoDataFrame(out, geometry="geometry", crs=block_groups.crs)
    unmatched = len(set(travel_times["GEOID"]) - set(block_groups["GEOID"]))
    if unmatched:
        stamp(f"  {unmatched:,} travel-time rows had no matching geometry and were dropped")
    stamp(f"Joined {len(out):,} block groups ({int(out['min_travel_min'].isna().sum()):,} without travel time)")
    return out

def write_shapefile(gdf, path):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    cols = [c for c in SHP_COLUMNS if c in gdf.columns]
    out = gdf[cols + ["geometry"]].rename(columns=SHP_COLUMNS)
    out.to_file(path)
    stamp(f"Shapefile written to {path}")
    return path
