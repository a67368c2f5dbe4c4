"""Shared fixtures: small centroid/clinic/polygon tables and a fake HTTP response."""
import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

from data_processing.io_readers import format_coordinate


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            import requests
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def dm_payload(seconds=None, element_status="OK", status="OK"):
    """Distance Matrix JSON for one origin/destination pair."""
    element = {"status": element_status}
    if seconds is not None:
        element["duration"] = {"value": seconds, "text": f"{seconds // 60} mins"}
    return {"status": status, "rows": [{"elements": [element]}]}


@pytest.fixture
def centroids():
    df = pd.DataFrame({
        "GEOID": ["131210001001", "131210001002", "131210002001"],
        "COUNTYFP": ["121", "121", "121"],
        "lat": [33.75, 33.76, 33.80],
        "lon": [-84.39, -84.38, -84.30],
    })
    df["coords"] = [format_coordinate(a, b) for a, b in zip(df["lat"], df["lon"])]
    return df


@pytest.fixture
def clinics():
    df = pd.DataFrame({"lat": [33.749, 33.90, 33.77, 34.10], "lon": [-84.388, -84.20, -84.36, -84.50]})
    df["coords"] = [format_coordinate(a, b) for a, b in zip(df["lat"], df["lon"])]
    return df


@pytest.fixture
def block_groups():
    return gpd.GeoDataFrame({
        "GEOID": ["131210001001", "131210001002", "131210002001", "131210003001"],
        "geometry": [box(-84.40, 33.74, -84.385, 33.755), box(-84.385, 33.755, -84.37, 33.77),
                     box(-84.31, 33.79, -84.29, 33.81), box(-84.29, 33.81, -84.27, 33.83)],
    }, crs="EPSG:4326")
