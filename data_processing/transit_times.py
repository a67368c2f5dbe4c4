# prep_access/data_processing/transit_times.py
"""
Transit travel times from block-group centroids to candidate clinics.

Each (centroid, clinic) pair is one Google Distance Matrix request with
mode=transit and a fixed departure. A failed request only marks that leg as
failed; the centroid's result is the minimum over the legs that succeeded,
or None ("unavailable") when none did.

Results are persisted twice so a run can restart without re-querying:
  - a joblib checkpoint {GEOID: [minutes or None per candidate]}
  - the intermediate CSV GEOID, coords, min_travel_min
"""
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import joblib
import numpy as np
import pandas as pd
import requests

from data_processing.io_readers import format_coordinate
from utils.log import stamp, Step

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"


@dataclass(frozen=True)
class LegResult:
    """Outcome of one routing query: minutes on success, error text otherwise."""
    minutes: Optional[float] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.minutes is not None


def min_travel_time(results: Iterable[LegResult]) -> Optional[float]:
    """Minimum over successful legs; None when every leg failed."""
    ok = [r.minutes for r in results if r.ok]
    return min(ok) if ok else None


class TransitRouter:
    """One-request-per-pair transit router with a fixed local departure."""

    def __init__(self, api_key: str, departure_date: str, departure_time: str,
                 timezone: str = "America/New_York", base_url: str = DISTANCE_MATRIX_URL,
                 timeout: Optional[float] = None):
        if not api_key:
            raise ValueError("A routing API key is required (set GOOGLE_MAPS_API_KEY).")
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.departure = int(pd.Timestamp(f"{departure_date} {departure_time}").tz_localize(timezone).timestamp())
        self.n_requests = 0

    def query(self, origin: str, dest: str) -> LegResult:
        """Transit duration in minutes from origin to dest ("lat,lon" strings)."""
        params = {
            "origins": origin.replace(" ", ""),
            "destinations": dest.replace(" ", ""),
            "mode": "transit",
            "departure_time": self.departure,
            "key": self.api_key,
        }
        self.n_requests += 1
        try:
            r = requests.get(self.base_url, params=params, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
            if data.get("status") != "OK":
                return LegResult(error=f"request status {data.get('status')}")
            element = data["rows"][0]["elements"][0]
            if element.get("status") != "OK":
                return LegResult(error=f"element status {element.get('status')}")
            seconds = float(element["duration"]["value"])
        except requests.RequestException as e:
            return LegResult(error=f"request failed: {e}")
        except (ValueError, KeyError, IndexError, TypeError) as e:
            return LegResult(error=f"malformed response: {e!r}")
        if not math.isfinite(seconds) or seconds < 0:
            return LegResult(error=f"malformed duration {seconds}")
        return LegResult(minutes=seconds / 60.0)


def resolve(origin: str, candidates, router: TransitRouter):
    """Query every candidate for one centroid; returns (minimum or None, legs)."""
    legs: List[LegResult] = []
    for cand in candidates:
        dest = format_coordinate(cand.lat, cand.lon)
        leg = router.query(origin, dest)
        if not leg.ok:
            stamp(f"  ✗ {origin} → {dest}: {leg.error}")
        legs.append(leg)
    return min_travel_time(legs), legs


def save_checkpoint(checkpoint: Dict[str, List[Optional[float]]], path):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(dict(checkpoint), path)
    return path

def load_checkpoint(path) -> Dict[str, List[Optional[float]]]:
    data = joblib.load(path)
    if not isinstance(data, dict):
        raise ValueError(f"Checkpoint {path} does not hold a GEOID mapping")
    return data

def checkpoint_to_frame(checkpoint, centroids) -> pd.DataFrame:
    """Reduce a checkpoint to one TravelTimeResult row per centroid."""
    coords = dict(zip(centroids["GEOID"], centroids["coords"]))
    rows = []
    for geoid, values in checkpoint.items():
        # NA may be stored as None or NaN
        best = min_travel_time(LegResult(minutes=v) for v in values if v is not None and v == v)
        rows.append({"GEOID": geoid, "coords": coords.get(geoid),
                     "min_travel_min": np.nan if best is None else best})
    return pd.DataFrame(rows, columns=["GEOID", "coords", "min_travel_min"])

def write_travel_times_csv(df, path):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df[["GEOID", "coords", "min_travel_min"]].to_csv(path, index=False)
    return path

def read_travel_times_csv(path):
    df = pd.read_csv(path, dtype={"GEOID": str, "coords": str})
    df["min_travel_min"] = pd.to_numeric(df["min_travel_min"], errors="coerce")
    return df


def _query_centroids(centroids, candidates, router):
    out = {}
    n = len(centroids)
    with Step(f"Transit queries for {n:,} centroids"):
        for i, (geoid, origin) in enumerate(zip(centroids["GEOID"], centroids["coords"]), 1):
            _, legs = resolve(origin, candidates.get(geoid, []), router)
            out[geoid] = [leg.minutes for leg in legs]
            if i % 100 == 0 or i == n:
                stamp(f"  {i:,}/{n:,} centroids · {router.n_requests:,} requests")
    return out


def resolve_all(centroids, candidates, router: Optional[TransitRouter],
                checkpoint_path=None, csv_path=None, force=False) -> pd.DataFrame:
    """
    Minimum transit time for every centroid.

    When checkpoint_path already exists (and force is False) the stored
    per-candidate minutes are reused. Centroids the checkpoint does not cover
    are queried and the checkpoint is rewritten; without a router that is a
    ValueError. Checkpoint entries for other GEOIDs are ignored.
    """
    if checkpoint_path and Path(checkpoint_path).exists() and not force:
        stamp(f"Reusing transit checkpoint {checkpoint_path}")
        stored = load_checkpoint(checkpoint_path)
        todo = centroids[~centroids["GEOID"].isin(list(stored))]
        if len(todo):
            if router is None:
                raise ValueError(f"Checkpoint {checkpoint_path} lacks {len(todo):,} centroid(s) "
                                 f"(e.g. {todo['GEOID'].tolist()[:5]}); rerun with --force.")
            stored.update(_query_centroids(todo, candidates, router))
            save_checkpoint(stored, checkpoint_path)
            stamp(f"Checkpoint extended with {len(todo):,} centroid(s)")
        checkpoint = {g: stored[g] for g in centroids["GEOID"]}
    else:
        if router is None:
            raise ValueError("No transit checkpoint found and no router configured.")
        checkpoint = _query_centroids(centroids, candidates, router)
        if checkpoint_path:
            save_checkpoint(checkpoint, checkpoint_path)
            stamp(f"Checkpoint written to {checkpoint_path}")

    out = checkpoint_to_frame(checkpoint, centroids)
    n_missing = int(out["min_travel_min"].isna().sum())
    stamp(f"Travel times: {len(out):,} centroids, {n_missing:,} without transit")
    if csv_path:
        write_travel_times_csv(out, csv_path)
    return out
