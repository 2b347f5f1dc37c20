import os, sys
import streamlit as st

# Ensure project root is on sys.path so 'app', 'config' and 'src' imports resolve
CURRENT_DIR = os.path.dirname(__file__)
APP_DIR = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
PROJECT_ROOT = os.path.abspath(os.path.join(APP_DIR, '..'))
for p in [APP_DIR, PROJECT_ROOT]:
    if p not in sys.path:
        sys.path.insert(0, p)

from app.services.config_service import (
    load_overrides,
    save_overrides,
    PlannerOverrides,
    VehicleModelSchema,
)
from config.ev_config import CHARGE_POLICIES, EV_MODELS
from src.utils.errors import InvalidConfiguration


st.set_page_config(page_title="Config Studio", page_icon="🛠️", layout="wide")
st.title("🛠️ Config Studio")
st.caption("Planner settings saved here apply to the next trip planned in the app or with ev-trip-plan.")

try:
    ui = load_overrides()
except InvalidConfiguration as e:
    st.error(f"Current overrides file is invalid, showing defaults: {e}")
    ui = PlannerOverrides()

with st.form("planner_form"):
    st.subheader("🔋 Planning")
    col1, col2, col3 = st.columns(3)
    with col1:
        safety_margin = st.slider(
            "Safety margin", min_value=0.5, max_value=1.0, step=0.05,
            value=float(ui.planner.safety_margin),
            help="Fraction of rated range the planner will use between charges.",
        )
        charge_policy = st.selectbox(
            "Charge policy", list(CHARGE_POLICIES),
            index=list(CHARGE_POLICIES).index(ui.planner.charge_policy),
            help="full: charge to full at every stop. minimum: only what the next stretch needs.",
        )
    with col2:
        miles_per_kwh = st.number_input(
            "Efficiency (mi/kWh)", min_value=1.0, max_value=10.0, step=0.1,
            value=float(ui.planner.miles_per_kwh),
        )
        min_dwell = st.number_input(
            "Minimum stop (min)", min_value=0.0, max_value=120.0, step=1.0,
            value=float(ui.planner.min_dwell_minutes),
        )
    with col3:
        corridor = st.number_input(
            "Corridor radius (mi)", min_value=0.0, max_value=50.0, step=0.5,
            value=float(ui.planner.corridor_radius_miles),
            help="Stations farther than this from the route are ignored.",
        )
        default_power = st.number_input(
            "Default station power (kW)", min_value=1.0, max_value=1000.0, step=1.0,
            value=float(ui.planner.default_station_power_kw),
        )

    st.subheader("🔌 Station sources")
    stations_csv = st.text_area("Station CSV files (one per line)", "\n".join(ui.stations.stations_csv))
    superchargers_json = st.text_input("Supercharger JSON file", ui.stations.superchargers_json or "")
    use_ocm = st.checkbox("Query OpenChargeMap along the route", value=ui.stations.use_openchargemap)

    submitted = st.form_submit_button("💾 Save Configuration", use_container_width=True)

if submitted:
    try:
        new_ui = PlannerOverrides(
            planner={
                'safety_margin': safety_margin,
                'miles_per_kwh': miles_per_kwh,
                'min_dwell_minutes': min_dwell,
                'corridor_radius_miles': corridor,
                'default_station_power_kw': default_power,
                'charge_policy': charge_policy,
                'waypoint_charger_radius_miles': ui.planner.waypoint_charger_radius_miles,
            },
            stations={
                **ui.stations.dict(),
                'stations_csv': [line.strip() for line in stations_csv.splitlines() if line.strip()],
                'superchargers_json': superchargers_json.strip() or None,
                'use_openchargemap': use_ocm,
            },
            vehicle_models=ui.vehicle_models,
        )
    except ValueError as e:
        st.error(f"Invalid settings: {e}")
    else:
        save_overrides(new_ui)
        st.cache_resource.clear()
        st.success("✅ Configuration saved")

st.subheader("🚗 Vehicle range")
selected_model = st.selectbox("Model", sorted(EV_MODELS), format_func=lambda m: EV_MODELS[m]['name'])
current = {**EV_MODELS[selected_model], **(ui.vehicle_models or {}).get(selected_model, VehicleModelSchema()).dict(exclude_none=True)}
with st.form(f"ev_model_form_{selected_model}"):
    range_miles = st.number_input("Rated range (mi)", min_value=10.0, max_value=1500.0,
                                  value=float(current['range_miles']))
    charging_speed = st.number_input("Max charging speed (kW)", min_value=1.0, max_value=1000.0,
                                     value=float(current['max_charging_speed']))
    if st.form_submit_button(f"💾 Save {EV_MODELS[selected_model]['name']}"):
        models = dict(ui.vehicle_models or {})
        models[selected_model] = VehicleModelSchema(range_miles=range_miles, max_charging_speed=charging_speed)
        ui.vehicle_models = models
        save_overrides(ui)
        st.cache_resource.clear()
        st.success(f"✅ {EV_MODELS[selected_model]['name']} saved")
