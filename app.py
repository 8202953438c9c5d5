"""
Cosmogony Explorer

A Streamlit application for browsing a cosmogony stored by
scripts/build_cosmogony.py: run statistics, the zone hierarchy and zone
boundaries on a map.
"""

import streamlit as st
import plotly.graph_objects as go
import folium
from streamlit_folium import st_folium
from typing import Dict, List, Optional
import os

from cosmogony.config import DB_PATH
from cosmogony.storage import CosmogonyStorage


# Page configuration
st.set_page_config(
    page_title="Cosmogony Explorer",
    page_icon="🗺️",
    layout="wide"
)

PARENT_COLOR = '#3388ff'
CHILD_COLOR = '#ff6633'


def init_session_state():
    """Initialize session state variables."""
    if 'db_path' not in st.session_state:
        st.session_state.db_path = DB_PATH

    if 'cosmogony_id' not in st.session_state:
        st.session_state.cosmogony_id = None

    if 'zone_path' not in st.session_state:
        st.session_state.zone_path = []


def create_type_chart(stats) -> go.Figure:
    """
    Create a bar chart of the zone type distribution.

    Args:
        stats: CosmogonyStats of the run

    Returns:
        Plotly Figure object
    """
    frame = stats.type_distribution()
    fig = go.Figure(go.Bar(x=frame['zone_type'], y=frame['count'], marker_color=PARENT_COLOR))
    fig.update_layout(height=300, margin=dict(l=0, r=0, t=20, b=0))
    return fig


def create_zone_map(zone: Dict, children: List[Dict]) -> folium.Map:
    """
    Create a Folium map with a zone and its children.

    Args:
        zone: Zone dict with 'geometry' (GeoJSON) and 'label'
        children: Child zone dicts, drawn in a second color

    Returns:
        Folium Map object
    """
    m = folium.Map()
    all_bounds = []

    layers = [(zone, PARENT_COLOR, 0.1)] + [(child, CHILD_COLOR, 0.3) for child in children]
    for item, color, opacity in layers:
        if item.get('geometry') is None:
            continue

        geojson_feature = {
            "type": "Feature",
            "geometry": item['geometry'],
            "properties": {"name": item['label']}
        }
        geojson_layer = folium.GeoJson(
            geojson_feature,
            name=item['label'],
            style_function=lambda x, c=color, o=opacity: {
                'fillColor': c,
                'color': c,
                'weight': 2,
                'fillOpacity': o
            },
            tooltip=folium.Tooltip(f"{item['label']} ({item['zone_type']})")
        )
        geojson_layer.add_to(m)

        bounds = geojson_layer.get_bounds()
        if bounds and None not in bounds[0]:
            all_bounds.extend(bounds)

    if all_bounds:
        m.fit_bounds(all_bounds)
    return m


def render_run_selector(storage: CosmogonyStorage) -> Optional[int]:
    """Render the sidebar run selector."""
    runs = storage.get_cosmogonies()
    if not runs:
        st.sidebar.info("No cosmogony stored yet. Run scripts/build_cosmogony.py first.")
        return None

    options = {f"#{r['id']} {r['osm_filename']} ({r['created_at'][:10]})": r['id'] for r in runs}
    selected = st.sidebar.selectbox("Cosmogony", options=list(options.keys()))
    return options[selected]


def render_stats(storage: CosmogonyStorage, cosmogony_id: int):
    """Render the run statistics section."""
    meta = storage.get_metadata(cosmogony_id)
    stats = meta['stats']

    st.subheader("📊 Statistics")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Zones", sum(stats.zone_type_counts.values()))
    col2.metric("With boundary", stats.zone_with_boundary)
    col3.metric("Without country", stats.zone_without_country)
    col4.metric("Dropped", stats.dropped_zones)

    st.plotly_chart(create_type_chart(stats), use_container_width=True)

    unhandled = stats.unhandled_levels()
    if not unhandled.empty:
        with st.expander("Unhandled admin levels"):
            st.dataframe(unhandled, hide_index=True, use_container_width=True)


def render_hierarchy(storage: CosmogonyStorage, cosmogony_id: int) -> Optional[Dict]:
    """Render hierarchical drill-down zone selection. Returns the deepest selected zone."""
    st.subheader("🔍 Zone Hierarchy")

    path = st.session_state.zone_path
    parent_idx = None
    level = 0
    selected_zone = None

    while True:
        children = storage.get_children(cosmogony_id, parent_idx)
        if not children:
            break

        options = [""] + [f"{c['label']} ({c['zone_type']})" for c in children]
        selected_idx = st.selectbox(
            "Roots" if level == 0 else f"Inside {selected_zone['label']}",
            options=range(len(options)),
            format_func=lambda x: options[x] if options[x] else "Select...",
            key=f"zone_level_{level}"
        )

        if selected_idx == 0:
            st.session_state.zone_path = path[:level]
            break

        selected_zone = children[selected_idx - 1]
        if level < len(path) and path[level] != selected_zone['idx']:
            path = path[:level]
        if level == len(path):
            path.append(selected_zone['idx'])
        st.session_state.zone_path = path

        parent_idx = selected_zone['idx']
        level += 1

    return selected_zone


def render_zone(storage: CosmogonyStorage, cosmogony_id: int, zone: Dict):
    """Render details and map of the selected zone."""
    st.subheader(f"🗺️ {zone['label']}")

    col1, col2 = st.columns([1, 2])
    with col1:
        st.write(f"**Type:** {zone['zone_type']}")
        st.write(f"**Admin level:** {zone['admin_level']}")
        st.write(f"**Country:** {zone['country_code']}")
        st.write(f"**OSM id:** {zone['osm_id']}")
        if zone['wikidata']:
            st.write(f"**Wikidata:** {zone['wikidata']}")
        if zone['zip_codes']:
            st.write(f"**Zip codes:** {', '.join(zone['zip_codes'])}")

    children = storage.get_children(cosmogony_id, zone['idx'])
    with col2:
        if zone.get('geometry') is None:
            st.info("No boundary stored for this zone")
        else:
            st_folium(create_zone_map(zone, children), width=800, height=450, key="zone_map")


def render_zone_table(storage: CosmogonyStorage, cosmogony_id: int):
    """Render the searchable zone table."""
    st.subheader("📋 Zones")
    frame = storage.get_zones_frame(cosmogony_id)

    search = st.text_input("Search by label", placeholder="e.g., Springfield")
    if search:
        frame = frame[frame['label'].str.contains(search, case=False, na=False)]

    zone_types = sorted(frame['zone_type'].dropna().unique())
    selected_types = st.multiselect("Zone types", options=zone_types, default=zone_types)
    frame = frame[frame['zone_type'].isin(selected_types)]

    st.dataframe(frame, hide_index=True, use_container_width=True)


def main():
    """Main application entry point."""
    init_session_state()

    st.title("🗺️ Cosmogony Explorer")
    st.write("Typed, hierarchical administrative zones built from OpenStreetMap boundaries")

    with st.sidebar:
        st.header("⚙️ Configuration")
        st.session_state.db_path = st.text_input(
            "Database Path",
            value=st.session_state.db_path,
            help="SQLite database written by scripts/build_cosmogony.py"
        )
        st.write("---")

    if not os.path.exists(st.session_state.db_path):
        st.warning(f"Database not found: {st.session_state.db_path}")
        st.stop()

    storage = CosmogonyStorage(st.session_state.db_path)
    try:
        cosmogony_id = render_run_selector(storage)
        if cosmogony_id is None:
            st.stop()
        if cosmogony_id != st.session_state.cosmogony_id:
            st.session_state.cosmogony_id = cosmogony_id
            st.session_state.zone_path = []

        render_stats(storage, cosmogony_id)
        st.write("---")

        selected_zone = render_hierarchy(storage, cosmogony_id)
        if selected_zone is not None:
            st.write("---")
            render_zone(storage, cosmogony_id, selected_zone)

        st.write("---")
        render_zone_table(storage, cosmogony_id)
    finally:
        storage.close()

    st.write("---")
    st.caption("Built with Streamlit, DuckDB & Shapely")


if __name__ == "__main__":
    main()
