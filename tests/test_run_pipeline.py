from pathlib import Path

import geopandas as gpd
import pandas as pd
import pytest
import requests

import run_pipeline
from config import Settings
from data_processing.transit_times import load_checkpoint, save_checkpoint
from tests.conftest import FakeResponse, dm_payload

ACS = [["NAME", "B03003_001E", "B03003_003E", "B03003_001M", "B03003_003M",
        "state", "county", "tract", "block group"],
       ["BG 1", "1000", "250", "1", "1", "13", "121", "000100", "1"],
       ["BG 2", "500", "50", "1", "1", "13", "121", "000100", "2"],
       ["BG 3", "800", "80", "1", "1", "13", "121", "000200", "1"],
       ["BG 4", "300", "0", "1", "1", "13", "121", "000300", "1"]]


@pytest.fixture
def inputs(tmp_path, centroids, block_groups):
    cent = centroids.rename(columns={"lat": "LATITUDE", "lon": "LONGITUDE"}).drop(columns="coords")
    cent.to_csv(tmp_path / "centroids.txt", index=False)
    pd.DataFrame({"Clinic": ["A", "B", "C"],
                  "Coordinates": ["33.749, -84.388", "33.9, -84.2", "33.77, -84.36"]}
                 ).to_excel(tmp_path / "clinics.xlsx", index=False)
    block_groups.to_file(tmp_path / "bg.geojson", driver="GeoJSON")
    out = tmp_path / "results"
    return Settings(centroids_path=str(tmp_path / "centroids.txt"), clinics_path=str(tmp_path / "clinics.xlsx"),
                    block_groups_path=str(tmp_path / "bg.geojson"), highways_path=None,
                    checkpoint_path=str(out / "ck.pkl"), travel_csv_path=str(out / "tt.csv"),
                    out_shp=str(out / "access.shp"), map_png=str(out / "map.png"), demo_png=str(out / "demo.png"),
                    counties=None, k=2, google_api_key="test-key")


def _fake_services(calls):
    def fake_get(url, params=None, timeout=None):
        calls.append(url)
        if "api.census.gov" in url:
            return FakeResponse(ACS)
        # the third centroid has no transit at all
        if params["origins"].startswith("33.800000"):
            return FakeResponse(dm_payload(element_status="ZERO_RESULTS"))
        return FakeResponse(dm_payload(900))
    return fake_get


def test_run_end_to_end(monkeypatch, inputs):
    calls = []
    monkeypatch.setattr(requests, "get", _fake_services(calls))
    joined = run_pipeline.run(inputs)

    tt = joined.set_index("GEOID")["min_travel_min"]
    assert tt["131210001001"] == 15.0 and tt["131210001002"] == 15.0
    assert pd.isna(tt["131210002001"]) and pd.isna(tt["131210003001"])
    assert joined.set_index("GEOID").loc["131210001001", "pct_hispanic"] == pytest.approx(25.0)
    # 3 centroids x k=2 routing calls + 1 ACS call
    assert sum("api.census.gov" not in u for u in calls) == 6
    for key in ("checkpoint_path", "travel_csv_path", "out_shp", "map_png", "demo_png"):
        assert Path(getattr(inputs, key)).exists()
    assert len(gpd.read_file(inputs.out_shp)) == 4


def test_rerun_uses_checkpoint(monkeypatch, inputs):
    calls = []
    monkeypatch.setattr(requests, "get", _fake_services(calls))
    run_pipeline.run(inputs)
    calls.clear()
    again = run_pipeline.run(Settings(**{**inputs.__dict__, "google_api_key": None}))
    assert all("api.census.gov" in u for u in calls)
    assert again.set_index("GEOID").loc["131210001001", "min_travel_min"] == 15.0


def test_missing_key_without_checkpoint_is_fatal(monkeypatch, inputs):
    monkeypatch.setattr(requests, "get", _fake_services([]))
    with pytest.raises(ValueError, match="GOOGLE_MAPS_API_KEY"):
        run_pipeline.run(Settings(**{**inputs.__dict__, "google_api_key": None}))


def test_cli_overrides(monkeypatch, inputs):
    seen = {}
    monkeypatch.setattr(run_pipeline, "run", lambda settings, force=False: seen.update(s=settings, force=force))
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "env-key")
    assert run_pipeline.main(["--state", "06", "-k", "5", "--counties", "037", "--force"]) == 0
    s = seen["s"]
    assert (s.state, s.k, s.counties, s.google_api_key, seen["force"]) == ("06", 5, ["037"], "env-key", True)
    assert s.departure_time == "08:00:00"


def test_partial_checkpoint_queries_only_new_centroids(monkeypatch, inputs):
    save_checkpoint({"131210001001": [15.0, 20.0], "131210001002": [15.0, None]}, inputs.checkpoint_path)
    calls = []
    monkeypatch.setattr(requests, "get", _fake_services(calls))
    joined = run_pipeline.run(inputs)
    # 1 uncovered centroid x k=2
    assert sum("api.census.gov" not in u for u in calls) == 2
    assert set(load_checkpoint(inputs.checkpoint_path)) == {"131210001001", "131210001002", "131210002001"}
    assert joined.set_index("GEOID").loc["131210001002", "min_travel_min"] == 15.0


def test_county_codes_are_zero_padded():
    assert Settings(counties=["63", 121, " 89 "]).counties == ["063", "121", "089"]
    assert Settings.from_env(counties=["67"]).counties == ["067"]


def test_unpadded_county_filter_keeps_centroids(monkeypatch, inputs):
    calls = []
    monkeypatch.setattr(requests, "get", _fake_services(calls))
    joined = run_pipeline.run(Settings(**{**inputs.__dict__, "counties": [121]}))
    assert len(joined) == 4
    assert joined.set_index("GEOID").loc["131210001001", "min_travel_min"] == 15.0
    assert sum("api.census.gov" not in u for u in calls) == 6
