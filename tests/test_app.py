import math

import numpy as np

from app.app import summarize_bins, weighted_mean_minutes
from viz.map_viz import MISSING_LABEL, TIME_LABELS


def _gdf(block_groups):
    gdf = block_groups.copy()
    gdf["min_travel_min"] = [8.0, np.nan, 95.0, 130.0]
    gdf["total_pop"] = [1000, 200, 600, 200]
    return gdf


def test_summarize_bins(block_groups):
    bins = summarize_bins(_gdf(block_groups)).set_index("time_class")
    assert [str(c) for c in bins.index] == TIME_LABELS + [MISSING_LABEL]
    assert bins.loc["0-15", "population"] == 1000
    assert bins.loc["91-120", "block_groups"] == 1
    assert bins.loc[MISSING_LABEL, "pop_share"] == 0.1
    assert bins.loc["16-30", "population"] == 0


def test_weighted_mean_skips_missing(block_groups):
    # (8*1000 + 95*600 + 130*200) / 1800
    assert weighted_mean_minutes(_gdf(block_groups)) == (8 * 1000 + 95 * 600 + 130 * 200) / 1800
    empty = _gdf(block_groups).assign(min_travel_min=np.nan)
    assert math.isnan(weighted_mean_minutes(empty))
