# prep_access/run_pipeline.py
"""
PrEP transit access pipeline.

  1. ACS Hispanic/Latino estimates per block group
  2. population-weighted centroids + clinic locations
  3. k nearest clinics per centroid (great-circle)
  4. transit time to each candidate, reduced to the minimum
  5. join onto block-group polygons, write shapefile
  6. render the travel-time and demographic maps

Outputs (see config.py):
  results/transit_checkpoint.pkl   per-candidate minutes (restart point)
  results/min_transit_times.csv    GEOID, coords, min_travel_min
  results/prep_transit_access.shp  joined polygons
  results/prep_transit_map.png
  results/hispanic_share_map.png
"""
import argparse
import sys
from pathlib import Path

from config import Settings
from data_processing import (
    read_demographics_acs, read_centroids, read_clinics, prune, TransitRouter,
    resolve_all, load_checkpoint, read_block_groups, join_geometries, write_shapefile
)
from utils.log import stamp, Step
from viz.map_viz import render_travel_time_map, render_demographic_map, read_highways

def run(settings: Settings, force=False):
    with Step("Demographics (ACS)"):
        demo = read_demographics_acs(settings.state, settings.year, total_var=settings.total_var,
                                     subgroup_var=settings.subgroup_var, counties=settings.counties,
                                     api_key=settings.census_api_key, timeout=settings.timeout)

    with Step("Centroids + clinics"):
        centroids = read_centroids(settings.centroids_path)
        if settings.counties:
            centroids = centroids[centroids["COUNTYFP"].isin(settings.counties)].reset_index(drop=True)
        clinics = read_clinics(settings.clinics_path, coord_col=settings.clinic_coord_col)
        stamp(f"{len(centroids):,} centroids, {len(clinics):,} clinics")

    have_checkpoint = Path(settings.checkpoint_path).exists() and not force
    covered = set(load_checkpoint(settings.checkpoint_path)) if have_checkpoint else set()
    # query only when the checkpoint is absent or misses some of the current centroids
    needs_queries = not have_checkpoint or not centroids["GEOID"].isin(covered).all()
    router = None
    if needs_queries:
        router = TransitRouter(settings.google_api_key, settings.departure_date, settings.departure_time,
                               timezone=settings.timezone, timeout=settings.timeout)

    with Step(f"Candidate pruning (k={settings.k})"):
        candidates = prune(centroids, clinics, k=settings.k) if needs_queries else {}

    travel = resolve_all(centroids, candidates, router, checkpoint_path=settings.checkpoint_path,
                         csv_path=settings.travel_csv_path, force=force)

    with Step("Geometry join"):
        bg = read_block_groups(settings.block_groups_path, counties=settings.counties)
        joined = join_geometries(bg, demo, centroids, travel)
        write_shapefile(joined, settings.out_shp)

    with Step("Maps"):
        highways = read_highways(settings.highways_path) if settings.highways_path else None
        render_travel_time_map(joined, settings.map_png, clinics=clinics, highways=highways)
        render_demographic_map(joined, settings.demo_png, clinics=clinics)
        stamp(f"Maps written to {settings.map_png}, {settings.demo_png}")
    return joined

def main(argv=None):
    parser = argparse.ArgumentParser(description="Transit travel time to the nearest PrEP clinic per block group")
    parser.add_argument("--centroids", dest="centroids_path", help="Population-weighted centroid file")
    parser.add_argument("--clinics", dest="clinics_path", help="Clinic spreadsheet with a 'lat, lon' column")
    parser.add_argument("--coord-col", dest="clinic_coord_col", help="Clinic coordinate column name")
    parser.add_argument("--block-groups", dest="block_groups_path", help="Block-group polygons (path or URL)")
    parser.add_argument("--highways", dest="highways_path", help="Optional highway lines overlay")
    parser.add_argument("--state", help="State FIPS code")
    parser.add_argument("--year", type=int, help="ACS 5-year vintage")
    parser.add_argument("--counties", nargs="*", help="County FIPS codes to keep")
    parser.add_argument("-k", type=int, help="Candidate clinics per centroid")
    parser.add_argument("--date", dest="departure_date", help="Departure date YYYY-MM-DD")
    parser.add_argument("--time", dest="departure_time", help="Departure time HH:MM:SS")
    parser.add_argument("--timeout", type=float, help="Per-request timeout in seconds")
    parser.add_argument("--force", action="store_true", help="Ignore the transit checkpoint and re-query")
    args = vars(parser.parse_args(argv))
    force = args.pop("force")

    settings = Settings.from_env(**args)
    run(settings, force=force)
    return 0

if __name__ == "__main__":
    sys.exit(main())
