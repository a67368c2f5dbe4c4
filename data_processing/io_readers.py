# prep_access/data_processing/io_readers.py
import os
import numpy as np
import pandas as pd
import requests

from utils.log import stamp

ACS_BASE = "https://api.census.gov/data/{year}/acs/acs5"
# order of the FIPS parts that make up a GEOID
GEO_PARTS = ["state", "county", "tract", "block group"]
CENTROID_COLS = ["LATITUDE", "LONGITUDE", "COUNTYFP", "GEOID"]

def format_coordinate(lat, lon):
    """Single formatter for every "lat, lon" string the pipeline emits."""
    return f"{float(lat):.6f}, {float(lon):.6f}"

def parse_coordinate_pair(value):
    """Parse "lat, lon" into two floats; raises ValueError on anything else."""
    parts = str(value).split(",")
    if len(parts) != 2:
        raise ValueError(f"Expected 'lat, lon', got {value!r}")
    try:
        lat, lon = float(parts[0].strip()), float(parts[1].strip())
    except ValueError:
        raise ValueError(f"Expected 'lat, lon', got {value!r}") from None
    if not (np.isfinite(lat) and np.isfinite(lon)):
        raise ValueError(f"Non-finite coordinate in {value!r}")
    return lat, lon

def _acs_geo_params(geography, state, counties):
    county = ",".join(counties) if counties else "*"
    if geography == "block group":
        return {"for": "block group:*", "in": f"state:{state} county:{county} tract:*"}
    if geography == "tract":
        return {"for": "tract:*", "in": f"state:{state} county:{county}"}
    if geography == "county":
        return {"for": f"county:{county}", "in": f"state:{state}"}
    raise ValueError(f"Unsupported geography: {geography!r}")

def fetch_acs_long(variables, state, year, geography="block group", counties=None, api_key=None, timeout=120):
    """
    Query ACS 5-year estimates and return them long: GEOID, variable, estimate, moe.
    Any HTTP failure (unknown variable, unreachable host) propagates.
    """
    vars_ = list(variables)
    get = ["NAME"] + [f"{v}E" for v in vars_] + [f"{v}M" for v in vars_]
    params = {"get": ",".join(get), **_acs_geo_params(geography, state, counties)}
    if api_key: params["key"] = api_key
    r = requests.get(ACS_BASE.format(year=year), params=params, timeout=timeout)
    r.raise_for_status()
    data = r.json()
    df = pd.DataFrame(data[1:], columns=data[0])

    missing = [c for c in get if c not in df.columns]
    if missing:
        raise ValueError(f"ACS response is missing columns {missing}")
    parts = [p for p in GEO_PARTS if p in df.columns]
    df["GEOID"] = df[parts].astype(str).agg("".join, axis=1)

    est = df.melt(id_vars="GEOID", value_vars=[f"{v}E" for v in vars_], var_name="variable", value_name="estimate")
    moe = df.melt(id_vars="GEOID", value_vars=[f"{v}M" for v in vars_], var_name="variable", value_name="moe")
    est["variable"] = est["variable"].str[:-1]
    moe["variable"] = moe["variable"].str[:-1]
    out = est.merge(moe, on=["GEOID", "variable"], how="left")
    for c in ("estimate", "moe"):
        out[c] = pd.to_numeric(out[c], errors="coerce")
        # ACS annotation sentinels (-666666666 etc.) are not counts
        out.loc[out[c] < 0, c] = np.nan
    stamp(f"ACS {year} {geography}: {df['GEOID'].nunique():,} units × {len(vars_)} variables")
    return out[["GEOID", "variable", "estimate", "moe"]]

def build_demographics(long_df, total_var, subgroup_var):
    """Wide GeoUnit table: GEOID, total_pop, hispanic_pop, pct_hispanic."""
    wide = (long_df.drop(columns=["moe"], errors="ignore")
                   .pivot(index="GEOID", columns="variable", values="estimate")
                   .reset_index())
    for v in (total_var, subgroup_var):
        if v not in wide.columns:
            raise ValueError(f"Variable {v} not present in ACS result")
    out = pd.DataFrame({
        "GEOID": wide["GEOID"].astype(str),
        "total_pop": pd.to_numeric(wide[total_var], errors="coerce"),
        "hispanic_pop": pd.to_numeric(wide[subgroup_var], errors="coerce"),
    })
    over = out[out["hispanic_pop"] > out["total_pop"]]
    if not over.empty:
        raise ValueError(f"{subgroup_var} exceeds {total_var} for GEOID(s) {over['GEOID'].tolist()[:10]}")
    total = out["total_pop"].where(out["total_pop"] > 0)
    out["pct_hispanic"] = out["hispanic_pop"] / total * 100
    return out

def read_demographics_acs(state, year, total_var="B03003_001", subgroup_var="B03003_003",
                          geography="block group", counties=None, api_key=None, timeout=120):
    long_df = fetch_acs_long([total_var, subgroup_var], state, year, geography=geography,
                             counties=counties, api_key=api_key, timeout=timeout)
    return build_demographics(long_df, total_var, subgroup_var)

def read_centroids(file_path, sep=","):
    """Population-weighted centroids, one per GEOID, with a 'coords' string."""
    df = pd.read_csv(file_path, sep=sep, dtype={"GEOID": str, "COUNTYFP": str, "STATEFP": str,
                                                "TRACTCE": str, "BLKGRPCE": str},
                     engine="python" if sep is None else "c")
    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in CENTROID_COLS if c not in df.columns]
    if missing:
        raise ValueError(f"Centroid file must contain {CENTROID_COLS}; missing {missing}")

    out = pd.DataFrame({
        "GEOID": df["GEOID"].astype(str).str.strip(),
        "COUNTYFP": df["COUNTYFP"].astype(str).str.strip().str.zfill(3),
        "lat": pd.to_numeric(df["LATITUDE"], errors="coerce"),
        "lon": pd.to_numeric(df["LONGITUDE"], errors="coerce"),
    })
    bad = out[out[["lat", "lon"]].isna().any(axis=1)]
    if not bad.empty:
        raise ValueError(f"Unparseable centroid coordinates for GEOID(s) {bad['GEOID'].tolist()[:10]}")
    if out["GEOID"].duplicated().any():
        raise ValueError("Centroid file has duplicate GEOIDs")
    out["coords"] = [format_coordinate(a, b) for a, b in zip(out["lat"], out["lon"])]
    return out

def read_clinics(file_path, coord_col="Coordinates"):
    """Clinic spreadsheet with one combined "lat, lon" column split into lat/lon."""
    ext = os.path.splitext(str(file_path))[1].lower()
    df = pd.read_csv(file_path, dtype=str) if ext == ".csv" else pd.read_excel(file_path, dtype=str)
    df.columns = [str(c).strip() for c in df.columns]
    if coord_col not in df.columns:
        raise ValueError(f"Clinic file must contain a '{coord_col}' column; got {df.columns[:10].tolist()}")

    parsed, bad = [], []
    for i, v in enumerate(df[coord_col].tolist()):
        try:
            parsed.append(parse_coordinate_pair(v))
        except ValueError:
            bad.append((i, v))
    if bad:
        raise ValueError(f"{len(bad)} clinic row(s) with unparseable '{coord_col}': {bad[:5]}")

    out = df.drop(columns=[coord_col]).copy()
    out["lat"] = [p[0] for p in parsed]
    out["lon"] = [p[1] for p in parsed]
    out["coords"] = [format_coordinate(a, b) for a, b in parsed]
    stamp(f"✓ Loaded {len(out):,} clinics from {file_path}")
    return out.reset_index(drop=True)
