# prep_access/app/app.py
import streamlit as st
import pandas as pd
import geopandas as gpd
import sys
from pathlib import Path

# Add parent directory to sys.path so we can import our modules
# This is needed because streamlit runs app.py as a top-level script
parent_dir = Path(__file__).parent.parent.absolute()
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import config
from data_processing import read_clinics
from viz.map_viz import travel_time_bins, render_explorer_map, TIME_LABELS, MISSING_LABEL

# shapefile field names -> analysis names
SHP_TO_COLS = {"total_pop": "total_pop", "pct_hisp": "pct_hispanic", "min_time": "min_travel_min"}

@st.cache_data
def load_joined(path):
    gdf = gpd.read_file(path).rename(columns=SHP_TO_COLS)
    gdf["GEOID"] = gdf["GEOID"].astype(str)
    return gdf

@st.cache_data
def load_clinics(path, coord_col):
    return read_clinics(path, coord_col=coord_col)

def summarize_bins(gdf):
    """Population and block-group counts per travel-time class."""
    df = pd.DataFrame({"time_class": travel_time_bins(gdf["min_travel_min"]).values,
                       "total_pop": pd.to_numeric(gdf["total_pop"], errors="coerce").fillna(0).values})
    out = (df.groupby("time_class", observed=False)
             .agg(block_groups=("total_pop", "size"), population=("total_pop", "sum"))
             .reindex(TIME_LABELS + [MISSING_LABEL], fill_value=0)
             .reset_index())
    total = out["population"].sum()
    out["pop_share"] = out["population"] / total if total > 0 else 0.0
    return out

def weighted_mean_minutes(gdf):
    df = pd.DataFrame({"m": pd.to_numeric(gdf["min_travel_min"], errors="coerce"),
                       "w": pd.to_numeric(gdf["total_pop"], errors="coerce")}).dropna()
    return float((df["m"] * df["w"]).sum() / df["w"].sum()) if df["w"].sum() > 0 else float("nan")

def main():
    st.set_page_config(page_title="PrEP Transit Access Explorer", layout="wide", initial_sidebar_state="expanded")
    st.title("PrEP Transit Access Explorer")
    st.markdown("Minimum public-transit time from each block-group population centroid to the nearest PrEP clinic.")
    st.divider()

    st.sidebar.header("Inputs")
    shp_path = st.sidebar.text_input("Joined shapefile", config.OUT_SHP)
    clinics_path = st.sidebar.text_input("Clinic spreadsheet", config.CLINICS_XLSX)

    with st.spinner("Loading results..."):
        try:
            gdf = load_joined(shp_path)
        except Exception as e:
            st.error(f"Error loading {shp_path}: {e}. Run `python run_pipeline.py` first.")
            st.stop()
        clinics = None
        if Path(clinics_path).exists():
            try:
                clinics = load_clinics(clinics_path, config.CLINIC_COORD_COL)
            except ValueError as e:
                st.sidebar.warning(f"Clinics not shown: {e}")

    bins = summarize_bins(gdf)
    no_transit = bins.loc[bins["time_class"] == MISSING_LABEL, "pop_share"].iloc[0]
    col1, col2, col3, col4 = st.columns(4)
    with col1: st.metric("Block groups", f"{len(gdf):,}")
    with col2: st.metric("Population", f"{int(pd.to_numeric(gdf['total_pop'], errors='coerce').fillna(0).sum()):,}")
    with col3: st.metric("Pop-weighted mean time", f"{weighted_mean_minutes(gdf):.1f} min")
    with col4: st.metric("Pop without transit route", f"{no_transit:.1%}")

    st.write("#### Population by travel time")
    import plotly.graph_objects as go
    fig = go.Figure(data=[go.Bar(x=bins["time_class"].astype(str), y=bins["population"],
                                 text=[f"{v:.1%}" for v in bins["pop_share"]], textposition="auto")])
    fig.update_layout(yaxis_title="Population", height=300, margin=dict(l=0, r=0, t=20, b=0))
    st.plotly_chart(fig, use_container_width=True)

    st.write("### Map")
    from streamlit_folium import st_folium
    st_folium(render_explorer_map(gdf, clinics=clinics), width=None)

    table = pd.DataFrame(gdf.drop(columns="geometry"))
    table["time_class"] = travel_time_bins(table["min_travel_min"]).astype(str).values
    st.dataframe(table.sort_values("min_travel_min", ascending=False, na_position="first"),
                 use_container_width=True, height=400)
    st.download_button("Download table CSV", table.to_csv(index=False), "prep_transit_access.csv", "text/csv")

if __name__ == "__main__":
    main()
