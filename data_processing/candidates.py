# prep_access/data_processing/candidates.py
from typing import NamedTuple

from geopy.distance import great_circle

# WGS84 semi-major axis; matches the Vincenty-sphere convention
EARTH_RADIUS_KM = 6378.137

class Candidate(NamedTuple):
    distance_m: float
    lat: float
    lon: float

def geodesic_distance_m(lon1, lat1, lon2, lat2):
    """Great-circle distance in meters. Longitude first, like geodesy toolkits."""
    return great_circle((lat1, lon1), (lat2, lon2), radius=EARTH_RADIUS_KM).meters

def prune(centroids, clinics, k=10):
    """
    For every centroid keep the k clinics closest by great-circle distance.

    Brute force over all pairs; candidates are sorted ascending and ties keep
    clinic input order. Returns {GEOID: [Candidate, ...]} in centroid order.
    """
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    clinic_pts = list(zip(clinics["lat"].astype(float), clinics["lon"].astype(float)))
    out = {}
    for geoid, lat, lon in zip(centroids["GEOID"], centroids["lat"].astype(float), centroids["lon"].astype(float)):
        dists = [Candidate(geodesic_distance_m(c_lon, c_lat, lon, lat), c_lat, c_lon) for c_lat, c_lon in clinic_pts]
        # sorted() is stable, so equal distances stay in clinic order
        out[geoid] = sorted(dists, key=lambda c: c.distance_m)[:k]
    return out
