# prep_access/data_processing/__init__.py
from .io_readers import (
    fetch_acs_long, build_demographics, read_demographics_acs,
    read_centroids, read_clinics, parse_coordinate_pair, format_coordinate
)
from .candidates import Candidate, geodesic_distance_m, prune
from .transit_times import (
    LegResult, TransitRouter, min_travel_time, resolve, resolve_all,
    save_checkpoint, load_checkpoint, checkpoint_to_frame,
    write_travel_times_csv, read_travel_times_csv
)
from .geo_join import read_block_groups, normalize_travel_times, join_geometries, write_shapefile

# Don't import the map renderers here - app.py and run_pipeline.py import them
# directly from viz.map_viz so matplotlib isn't pulled in by data-only callers
