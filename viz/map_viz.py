# prep_access/viz/map_viz.py
import math
from pathlib import Path

import geopandas as gpd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.colors import Normalize
from matplotlib.lines import Line2D
from matplotlib.patches import Patch
import numpy as np
import pandas as pd

# Fixed travel-time classes (minutes, upper bound inclusive)
TIME_BREAKS = [0, 15, 30, 60, 90, 120, math.inf]
TIME_LABELS = ["0-15", "16-30", "31-60", "61-90", "91-120", ">120"]
TIME_COLORS = ["#1a9850", "#91cf60", "#fee08b", "#fc8d59", "#d73027", "#7f0000"]
MISSING_LABEL = "No Public Transit Available"
MISSING_COLOR = "#bdbdbd"

def travel_time_bins(minutes):
    """Categorical travel-time class per value; NaN/inf map to MISSING_LABEL."""
    vals = pd.to_numeric(pd.Series(minutes), errors="coerce").astype(float)
    vals = vals.where(np.isfinite(vals))
    cats = pd.cut(vals, bins=TIME_BREAKS, labels=TIME_LABELS, right=True, include_lowest=True)
    cats = cats.cat.add_categories([MISSING_LABEL])
    return cats.fillna(MISSING_LABEL)

def read_highways(path):
    gdf = gpd.read_file(path)
    if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
        gdf = gdf.to_crs(epsg=4326)
    return gdf

def _clinic_points(clinics):
    return gpd.GeoDataFrame(clinics.copy(), geometry=gpd.points_from_xy(clinics["lon"], clinics["lat"]), crs="EPSG:4326")

def _finish(fig, ax, title, out_path, dpi):
    ax.set_title(title, fontsize=16, pad=20, weight="bold")
    ax.set_axis_off()
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    # no bbox_inches='tight': the image keeps exactly figsize*dpi pixels
    fig.savefig(out_path, dpi=dpi, facecolor="white")
    plt.close(fig)
    return out_path

def render_travel_time_map(gdf, out_path, clinics=None, highways=None,
                           title="Public Transit Time to Nearest PrEP Clinic",
                           col="min_travel_min", figsize=(12, 10), dpi=100):
    """Static choropleth of travel-time classes with optional clinic/highway overlays."""
    plot = gdf.copy()
    plot["time_class"] = travel_time_bins(plot[col]).values

    fig, ax = plt.subplots(1, 1, figsize=figsize, dpi=dpi, facecolor="white")
    handles = []
    for label, color in zip(TIME_LABELS + [MISSING_LABEL], TIME_COLORS + [MISSING_COLOR]):
        subset = plot[plot["time_class"] == label]
        if len(subset) > 0:
            subset.plot(ax=ax, color=color, edgecolor="white", linewidth=0.2)
        name = label if label == MISSING_LABEL else f"{label} min"
        handles.append(Patch(facecolor=color, label=name))

    if highways is not None and len(highways) > 0:
        highways.plot(ax=ax, color="#333333", linewidth=1.2, zorder=4)
        handles.append(Line2D([0], [0], color="#333333", linewidth=1.2, label="Highways"))
    if clinics is not None and len(clinics) > 0:
        _clinic_points(clinics).plot(ax=ax, color="#1976D2", marker="o", markersize=30,
                                     edgecolor="white", linewidth=1, zorder=5)
        handles.append(Line2D([0], [0], marker="o", color="none", markerfacecolor="#1976D2",
                              markersize=8, label="PrEP clinics"))

    ax.legend(handles=handles, title="Travel time", loc="lower left", frameon=True,
              facecolor="white", edgecolor="none", framealpha=0.9)
    return _finish(fig, ax, title, out_path, dpi)

def render_demographic_map(gdf, out_path, clinics=None, col="pct_hispanic",
                           title="Hispanic/Latino Population Share (%)", figsize=(12, 10), dpi=100):
    fig, ax = plt.subplots(1, 1, figsize=figsize, dpi=dpi, facecolor="white")
    gdf.plot(column=col, ax=ax, cmap="Purples", norm=Normalize(vmin=0, vmax=100),
             edgecolor="white", linewidth=0.2, legend=True,
             legend_kwds={"label": "Hispanic/Latino %", "shrink": 0.7, "format": "%.0f%%"},
             missing_kwds={"color": MISSING_COLOR, "label": "No population"})
    if clinics is not None and len(clinics) > 0:
        _clinic_points(clinics).plot(ax=ax, color="#1976D2", markersize=30, edgecolor="white", zorder=5)
    return _finish(fig, ax, title, out_path, dpi)

def render_explorer_map(gdf, clinics=None, col="min_travel_min"):
    """Interactive folium map of travel-time classes (used by the Streamlit explorer)."""
    import folium

    plot = gdf.copy()
    plot["time_class"] = travel_time_bins(plot[col]).astype(str).values
    colors = dict(zip(TIME_LABELS + [MISSING_LABEL], TIME_COLORS + [MISSING_COLOR]))
    minx, miny, maxx, maxy = plot.total_bounds
    fmap = folium.Map(location=[(miny + maxy) / 2, (minx + maxx) / 2], zoom_start=9, control_scale=True)
    fmap.fit_bounds([[miny, minx], [maxy, maxx]], padding=(20, 20))

    fields = [c for c in ["GEOID", "time_class", col, "pct_hispanic", "total_pop"] if c in plot.columns]
    keep = plot[fields + ["geometry"]].copy()
    for c in (col, "pct_hispanic"):
        if c in keep.columns: keep[c] = keep[c].round(1)
    folium.GeoJson(
        keep.to_json(na="null"),
        style_function=lambda f: {"fillColor": colors.get(f["properties"]["time_class"], MISSING_COLOR),
                                  "color": "white", "weight": 0.3, "fillOpacity": 0.75},
        tooltip=folium.GeoJsonTooltip(fields=fields),
    ).add_to(fmap)

    if clinics is not None:
        for _, r in clinics.iterrows():
            folium.CircleMarker(location=[float(r["lat"]), float(r["lon"])], radius=5,
                                color=None, fill=True, fill_color="#1976D2", fill_opacity=0.9).add_to(fmap)
    return fmap
