import math

# Tick
TICK_INTERVAL = 0.3 # seconds of wall time between ticks
TIME_SCALE = 8.0 # simulated distance multiplier per tick
TICK_DURATION_HOURS = TICK_INTERVAL / 3600.0
MAX_WALK_ITERATIONS = 100
MIN_SEGMENT_KM = 0.0001 # segments shorter than this are skipped

# Stuck detection
STUCK_SECONDS = 5.0
STUCK_THRESHOLD = math.ceil(STUCK_SECONDS / TICK_INTERVAL) # 17 ticks
STUCK_DISPLACEMENT_KM = 0.05
STUCK_INCREMENT = 1
STUCK_INCREMENT_RED = 3

# Proximity radii (km)
DRIFT_SNAP_KM = 5.0
INCIDENT_PROXIMITY_KM = 0.5
ALTERNATIVE_TRIGGER_KM = 1.0
HOTSPOT_PROXIMITY_KM = 1.0
DENSITY_MARKER_RADIUS_KM = 0.1
SHUTTLE_TOLERANCE_KM = 1.0
AI_CONTEXT_RADIUS_KM = 5.0
MAX_TRUSTED_INCIDENTS = 20 # feeds returning this many or more are ignored for rerouting

# Alternative scoring
WAYPOINT_SAMPLE_STRIDE = 5
DEFAULT_INCIDENT_DELAY_MINUTES = 15.0
HOTSPOT_PENALTY_HIGH = 600.0 # seconds
HOTSPOT_PENALTY_MEDIUM = 300.0

# Speed (km/h)
BASE_SPEED_BY_CLASS = {
    "truck": 40.0,
    "van": 50.0,
    "car": 60.0,
}
DEFAULT_BASE_SPEED = 50.0
MAX_INCIDENT_SLOWDOWN = 0.5
DENSITY_FACTOR_RED = 0.3
DENSITY_FACTOR_YELLOW = 0.6
AI_SLOW_DOWN_FACTOR = 0.7
AI_SPEED_UP_FACTOR = 1.2
AI_SPEED_CAP = 1.2

# Fuel (percent)
FUEL_MAX = 100.0
FUEL_RATE_PER_KM = 20.0
FUEL_RATE_PER_KM_SLOW = 30.0
FUEL_SLOW_SPEED = 20.0 # km/h
FUEL_IDLE_PER_TICK = 0.5
LOW_FUEL_THRESHOLD = 20.0
CRITICAL_FUEL_THRESHOLD = 5.0

# Zones
ZONE_BASE_MIN = 20.0
ZONE_BASE_SPREAD = 30.0
ZONE_NOISE = 10.0
ZONE_CONGESTION_MIN = 15.0
ZONE_CONGESTION_MAX = 100.0
ZONE_VEHICLE_TIERS = [(5, 40.0), (2, 25.0), (0, 10.0)] # (more than N vehicles, bonus)
ZONE_RUSH_BONUS = 20.0
ZONE_RUSH_HOURS = [(8, 10), (17, 19)] # inclusive
ZONE_DEFAULT_RADIUS_M = 1000.0

# AI hook
AI_BASE_PROBABILITY = 0.05
AI_CONGESTED_PROBABILITY = 0.2
AI_CONGESTED_SPEED_FACTOR = 0.3
AI_COOLDOWN_SECONDS = 30.0

# Environment
RUSH_HOUR_WINDOWS = [(7, 10), (17, 21)] # end exclusive
WEATHER_CHANGE_INTERVAL = 300.0 # simulated seconds
WEATHER_FETCH_INTERVAL = 900.0 # wall seconds
MIN_TIME_MULTIPLIER = 0.1
MAX_TIME_MULTIPLIER = 100.0
BASE_TEMPERATURE = 28.0
TEMPERATURE_AMPLITUDE = 5.0
MIN_TEMPERATURE = 22.0
MAX_TEMPERATURE = 38.0
BASE_CONGESTION = 30.0
RUSH_CONGESTION = 40.0
CONGESTION_NOISE = 10.0
MIN_CONGESTION_SPEED_FACTOR = 0.2
BASE_SPAWN_PROBABILITY = 0.001
HIGH_CONGESTION = 70.0

# Route graph
GRAPH_BASE_SPEED = 40.0 # km/h
GRAPH_NODE_PRECISION = 6 # decimal places used to merge nodes
DEFAULT_PATH_CONGESTION = 30.0
FUEL_PRICE = 105.0 # per litre
FUEL_EFFICIENCY = {
    "truck": 5.0, # km per litre
    "van": 10.0,
    "car": 15.0,
}
DEFAULT_FUEL_EFFICIENCY = 10.0
INCIDENT_COST_FACTOR = {
    "low": 1.2,
    "medium": 1.5,
    "high": 2.0,
    "critical": 3.0,
}

# Commands
COMMAND_QUEUE_LIMIT = 1000

# External call timeouts (seconds)
ROUTE_TIMEOUT = 10.0
ALTERNATIVES_TIMEOUT = 20.0
NEAREST_TIMEOUT = 5.0
AI_TIMEOUT = 5.0
WEATHER_TIMEOUT = 10.0
INCIDENT_TIMEOUT = 2.0
STORE_TIMEOUT = 2.0

# Endpoints
OSRM_BASE_URL = "https://router.project-osrm.org"
OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
OPENROUTER_MODEL = "meta-llama/llama-3.1-8b-instruct"
DEFAULT_CITY = (12.9716, 77.5946) # Bengaluru
