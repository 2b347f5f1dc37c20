# Vehicle catalog keyed by model id, US units
# range_miles: manufacturer-rated (EPA) range on a full charge
# max_charging_speed: vehicle-side DC acceptance limit
EV_MODELS = {
    'tesla_model_3': {
        'name': 'Tesla Model 3',
        'range_miles': 358,
        'max_charging_speed': 250,  # kW
        'battery_capacity': 82,     # kWh
    },
    'tesla_model_y': {
        'name': 'Tesla Model Y',
        'range_miles': 330,
        'max_charging_speed': 250,
        'battery_capacity': 81,
    },
    'tesla_model_s': {
        'name': 'Tesla Model S',
        'range_miles': 405,
        'max_charging_speed': 250,
        'battery_capacity': 100,
    },
    'tesla_model_x': {
        'name': 'Tesla Model X',
        'range_miles': 348,
        'max_charging_speed': 250,
        'battery_capacity': 100,
    },
    'tesla_cybertruck': {
        'name': 'Tesla Cybertruck',
        'range_miles': 500,
        'max_charging_speed': 250,
        'battery_capacity': 123,
    },
    'nissan_leaf': {
        'name': 'Nissan Leaf',
        'range_miles': 212,
        'max_charging_speed': 100,
        'battery_capacity': 62,
    },
    'chevy_bolt': {
        'name': 'Chevrolet Bolt',
        'range_miles': 259,
        'max_charging_speed': 55,
        'battery_capacity': 65,
    },
    'ford_mustang_mach_e': {
        'name': 'Ford Mustang Mach-E',
        'range_miles': 312,
        'max_charging_speed': 150,
        'battery_capacity': 88,
    },
    'hyundai_ioniq_5': {
        'name': 'Hyundai Ioniq 5',
        'range_miles': 303,
        'max_charging_speed': 235,
        'battery_capacity': 77.4,
    },
    'volkswagen_id4': {
        'name': 'Volkswagen ID.4',
        'range_miles': 275,
        'max_charging_speed': 125,
        'battery_capacity': 77,
    },
    'kia_ev6': {
        'name': 'Kia EV6',
        'range_miles': 310,
        'max_charging_speed': 263,
        'battery_capacity': 84,
    },
}

DEFAULT_MODEL_ID = 'tesla_model_3'

# Short ids used by the web front end
MODEL_ALIASES = {
    'model3': 'tesla_model_3',
    'modely': 'tesla_model_y',
    'models': 'tesla_model_s',
    'modelx': 'tesla_model_x',
    'cybertruck': 'tesla_cybertruck',
}
