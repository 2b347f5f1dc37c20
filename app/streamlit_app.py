import os, sys

import pandas as pd
import pydeck as pdk
import streamlit as st

# Add project root to path for imports
CURRENT_DIR = os.path.dirname(__file__)
APP_DIR = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
PROJECT_ROOT = os.path.abspath(os.path.join(APP_DIR, '..'))
for p in [APP_DIR, PROJECT_ROOT]:
    if p not in sys.path:
        sys.path.insert(0, p)

from app.services.config_service import merged_runtime_config
from app.services.planning_service import PlanningService
from config.ev_config import CHARGE_POLICIES, DEFAULT_MODEL_ID


@st.cache_resource
def get_planning_service(charge_policy: str) -> PlanningService:
    """One service (and its station catalogs) per charge policy"""
    return PlanningService(runtime=merged_runtime_config(charge_policy=charge_policy))


def _parse_latlng(text: str):
    lat, lng = [part.strip() for part in text.split(',')]
    return {'lat': float(lat), 'lng': float(lng)}


def _stops_frame(charge_stops) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'Stop': stop['name'],
            'Mile': round(stop['distance'], 1),
            'Charge (min)': round(stop['duration'], 1),
            'Power (kW)': stop['powerKw'],
            'Miles added': round(stop['milesAdded'], 1),
            'Energy (kWh)': round(stop['energyKwh'], 1),
            'lat': stop['location']['lat'],
            'lng': stop['location']['lng'],
        }
        for stop in charge_stops
    ])


def render_map(payload):
    route = payload.get('route') or []
    if not route:
        return
    stops = _stops_frame(payload.get('chargeStops') or [])
    layers = [
        pdk.Layer(
            "PathLayer",
            data=[{'path': [[p['lng'], p['lat']] for p in route]}],
            get_path="path",
            get_color=[0, 255, 166],
            width_min_pixels=3,
        )
    ]
    if not stops.empty:
        layers.append(pdk.Layer(
            "ScatterplotLayer",
            data=stops,
            get_position=["lng", "lat"],
            get_fill_color=[255, 80, 80],
            get_radius=3000,
            pickable=True,
        ))
    view = pdk.ViewState(
        latitude=sum(p['lat'] for p in route) / len(route),
        longitude=sum(p['lng'] for p in route) / len(route),
        zoom=5,
    )
    st.pydeck_chart(pdk.Deck(layers=layers, initial_view_state=view, tooltip={"text": "{Stop}"}))


def main():
    st.set_page_config(page_title="EV Trip Planner", page_icon="⚡", layout="wide")
    st.title("⚡ EV Trip Planner")

    charge_policy = st.sidebar.selectbox("Charge policy", list(CHARGE_POLICIES))
    service = get_planning_service(charge_policy)

    models = service.models()
    model_ids = [m['id'] for m in models]
    model_id = st.sidebar.selectbox(
        "Vehicle",
        model_ids,
        index=model_ids.index(DEFAULT_MODEL_ID) if DEFAULT_MODEL_ID in model_ids else 0,
        format_func=lambda mid: next(f"{m['name']} ({m['range']} mi)" for m in models if m['id'] == mid),
    )

    origin = st.text_input("Origin (lat,lng)", "37.7749,-122.4194")
    destination = st.text_input("Destination (lat,lng)", "34.0522,-118.2437")
    waypoint_text = st.text_area("Waypoints (one lat,lng per line, in order)", "")

    if not st.button("Plan trip"):
        return

    try:
        body = {
            'origin': _parse_latlng(origin),
            'destination': _parse_latlng(destination),
            'waypoints': [_parse_latlng(line) for line in waypoint_text.splitlines() if line.strip()],
            'model': model_id,
        }
    except ValueError:
        st.error("Coordinates must look like 37.7749,-122.4194")
        return

    with st.spinner("Planning charge stops..."):
        status, payload = service.handle(body)

    if status != 200:
        st.error(f"{payload.get('error')}: {payload.get('message')}")
        if status != 422:
            return

    col1, col2, col3 = st.columns(3)
    col1.metric("Distance", f"{payload.get('totalDistance', 0):,.0f} mi")
    col2.metric("Charge stops", len(payload.get('chargeStops') or []))
    col3.metric("Total time", f"{payload.get('totalDuration', 0) / 60:,.1f} h")

    stops = _stops_frame(payload.get('chargeStops') or [])
    if not stops.empty:
        st.dataframe(stops.drop(columns=['lat', 'lng']), use_container_width=True)
    render_map(payload)


def launch():
    """Console entry point: run this file under `streamlit run`"""
    from streamlit.web import cli as stcli

    sys.argv = ["streamlit", "run", os.path.abspath(__file__)]
    sys.exit(stcli.main())


if __name__ == "__main__":
    main()
