import logging
import math
import random
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple
from fleetsim.domain import config
from fleetsim.domain.errors import ProviderUnavailable
from fleetsim.domain.models import EnvironmentState, IncidentType, Severity, WeatherCondition, WeatherReport
from fleetsim.kernel.external import call_external

logger = logging.getLogger(__name__)

C = WeatherCondition

WEATHER_TRANSITIONS: Dict[WeatherCondition, Dict[WeatherCondition, float]] = {
    C.CLEAR: {C.CLEAR: 0.7, C.CLOUDY: 0.25, C.RAIN: 0.05},
    C.CLOUDY: {C.CLEAR: 0.3, C.CLOUDY: 0.5, C.RAIN: 0.15, C.FOG: 0.05},
    C.RAIN: {C.RAIN: 0.5, C.HEAVY_RAIN: 0.2, C.CLOUDY: 0.25, C.CLEAR: 0.05},
    C.HEAVY_RAIN: {C.HEAVY_RAIN: 0.4, C.RAIN: 0.4, C.STORM: 0.1, C.CLOUDY: 0.1},
    C.FOG: {C.FOG: 0.5, C.CLOUDY: 0.4, C.CLEAR: 0.1},
    C.STORM: {C.STORM: 0.3, C.HEAVY_RAIN: 0.5, C.RAIN: 0.2},
}

TEMPERATURE_OFFSET = {C.CLEAR: 2, C.CLOUDY: 0, C.RAIN: -3, C.HEAVY_RAIN: -5, C.FOG: -2, C.STORM: -6}
VISIBILITY_M = {C.CLEAR: 15000, C.CLOUDY: 12000, C.RAIN: 5000, C.HEAVY_RAIN: 2000, C.FOG: 500, C.STORM: 1000}
WEATHER_CONGESTION = {C.CLEAR: 0, C.CLOUDY: 5, C.RAIN: 15, C.HEAVY_RAIN: 25, C.FOG: 20, C.STORM: 30}
WEATHER_SPEED_FACTOR = {C.CLEAR: 1.0, C.CLOUDY: 0.95, C.RAIN: 0.75, C.HEAVY_RAIN: 0.5, C.FOG: 0.6, C.STORM: 0.4}
SPAWN_WEATHER_MULTIPLIER = {C.HEAVY_RAIN: 3.0, C.STORM: 5.0, C.FOG: 2.0}

WEATHER_DESCRIPTIONS = {
    C.CLEAR: "Clear skies, excellent visibility",
    C.CLOUDY: "Partly cloudy, good conditions",
    C.RAIN: "Light rain, reduced visibility",
    C.HEAVY_RAIN: "Heavy rainfall, poor visibility",
    C.FOG: "Dense fog, very low visibility",
    C.STORM: "Thunderstorm, dangerous conditions",
}

def is_rush_hour(hour: int) -> bool:
    return any(start <= hour < end for start, end in config.RUSH_HOUR_WINDOWS)

def diurnal_temperature(hour: float, condition: WeatherCondition) -> float:
    """Sinusoid peaking mid-afternoon plus a weather offset, clamped to the city's range."""
    base = config.BASE_TEMPERATURE + math.sin((hour - 6) * math.pi / 12) * config.TEMPERATURE_AMPLITUDE
    return max(config.MIN_TEMPERATURE, min(config.MAX_TEMPERATURE, base + TEMPERATURE_OFFSET[condition]))

def congestion_speed_factor(congestion: float) -> float:
    return max(config.MIN_CONGESTION_SPEED_FACTOR, 1.0 - congestion / 150.0)

class EnvironmentEngine:
    """
    Drives the simulated clock, weather and global congestion. Live weather
    is used when a provider is configured; any provider failure switches the
    engine to simulated weather for good, until the mode is set again.
    """
    def __init__(self, weather_provider=None, rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.monotonic, start_time: Optional[datetime] = None):
        self.weather_provider = weather_provider
        self.use_real_weather = weather_provider is not None
        self.rng = rng or random.Random()
        self.clock = clock
        self.state = EnvironmentState(
            temperature=28.5,
            visibility_m=10000,
            wind_speed=12.0,
            sim_time=start_time or datetime.now(),
            live_weather=self.use_real_weather,
        )
        self._forced_rush: Optional[bool] = None
        self._last_update = clock()
        self._last_weather_change = self.state.sim_time
        self._last_weather_fetch: Optional[float] = None
        self._update_derived_factors()

    async def update(self) -> EnvironmentState:
        """Advances one tick, fetching live weather when it is due."""
        if self.use_real_weather and self._weather_fetch_due():
            await self.refresh_weather()
        return self.step()

    async def refresh_weather(self):
        self._last_weather_fetch = self.clock()
        try:
            report = await call_external(
                "weather", self.weather_provider.current, timeout=config.WEATHER_TIMEOUT,
            )
        except ProviderUnavailable as e:
            logger.warning("Live weather unavailable, switching to simulated weather: %s", e)
            self.set_weather_mode(False)
            return
        self.apply_report(report)

    def step(self) -> EnvironmentState:
        now = self.clock()
        delta = max(0.0, now - self._last_update)
        self._last_update = now
        self.state.sim_time += timedelta(seconds=delta * self.state.time_multiplier)

        self._update_rush_hour()
        if not self.use_real_weather:
            if (self.state.sim_time - self._last_weather_change).total_seconds() >= config.WEATHER_CHANGE_INTERVAL:
                self._evolve_weather()
                self._last_weather_change = self.state.sim_time
        self._update_congestion()
        self._update_derived_factors()
        return self.state

    def apply_report(self, report: WeatherReport):
        self.state.condition = report.condition
        self.state.temperature = report.temperature
        self.state.visibility_m = report.visibility_m
        self.state.wind_speed = report.wind_speed
        self.state.weather_speed_factor = report.speed_factor
        self._update_derived_factors()

    def _weather_fetch_due(self) -> bool:
        if self._last_weather_fetch is None:
            return True
        return self.clock() - self._last_weather_fetch > config.WEATHER_FETCH_INTERVAL

    def _update_rush_hour(self):
        if self._forced_rush is not None:
            self.state.rush_hour = self._forced_rush
        else:
            self.state.rush_hour = is_rush_hour(self.state.sim_time.hour)

    def _evolve_weather(self):
        previous = self.state.condition
        roll = self.rng.random()
        cumulative = 0.0
        for condition, probability in WEATHER_TRANSITIONS[previous].items():
            cumulative += probability
            if roll < cumulative:
                self.state.condition = condition
                break
        if self.state.condition != previous:
            logger.info("Weather changed: %s -> %s", previous.value, self.state.condition.value)
        self._update_temperature()
        self._update_visibility()

    def _update_temperature(self):
        sim = self.state.sim_time
        self.state.temperature = diurnal_temperature(sim.hour + sim.minute / 60.0, self.state.condition)

    def _update_visibility(self):
        self.state.visibility_m = VISIBILITY_M[self.state.condition]

    def _update_congestion(self):
        congestion = config.BASE_CONGESTION
        if self.state.rush_hour:
            congestion += config.RUSH_CONGESTION
        congestion += WEATHER_CONGESTION[self.state.condition]
        congestion += (self.rng.random() - 0.5) * config.CONGESTION_NOISE
        self.state.global_congestion = max(0.0, min(100.0, congestion))

    def _update_derived_factors(self):
        # Live reports carry their own weather factor
        if not self.use_real_weather:
            self.state.weather_speed_factor = WEATHER_SPEED_FACTOR[self.state.condition]
        self.state.congestion_speed_factor = congestion_speed_factor(self.state.global_congestion)
        self.state.live_weather = self.use_real_weather

    def speed_factor(self) -> float:
        return self.state.weather_speed_factor * self.state.congestion_speed_factor

    def snapshot(self) -> EnvironmentState:
        return self.state.model_copy()

    def set_weather(self, condition: WeatherCondition):
        self.state.condition = condition
        self._update_temperature()
        self._update_visibility()
        self._update_derived_factors()

    def set_weather_mode(self, use_real_weather: bool):
        if use_real_weather and self.weather_provider is None:
            raise ProviderUnavailable("No weather provider configured")
        self.use_real_weather = use_real_weather
        # Force a fetch on the next update
        self._last_weather_fetch = None
        self._update_derived_factors()
        logger.info("Weather mode: %s", "real-time" if use_real_weather else "simulated")

    def set_time_multiplier(self, multiplier: float):
        self.state.time_multiplier = max(config.MIN_TIME_MULTIPLIER, min(config.MAX_TIME_MULTIPLIER, multiplier))

    def set_rush_hour(self, enabled: Optional[bool]):
        """Forces rush hour on or off; None returns to the clock-driven schedule."""
        self._forced_rush = enabled
        self._update_rush_hour()
        self._update_congestion()
        self._update_derived_factors()

    def weather_description(self) -> str:
        return WEATHER_DESCRIPTIONS[self.state.condition]

    def time_description(self) -> str:
        hour = self.state.sim_time.hour
        if 5 <= hour < 12:
            return "Morning"
        if 12 <= hour < 17:
            return "Afternoon"
        if 17 <= hour < 21:
            return "Evening"
        return "Night"

    def incident_spawn_probability(self) -> float:
        probability = config.BASE_SPAWN_PROBABILITY
        probability *= SPAWN_WEATHER_MULTIPLIER.get(self.state.condition, 1.0)
        if self.state.rush_hour:
            probability *= 2
        if self.state.global_congestion > config.HIGH_CONGESTION:
            probability *= 1.5
        return probability

    def should_spawn_incident(self) -> Optional[Tuple[IncidentType, Severity]]:
        if self.rng.random() >= self.incident_spawn_probability():
            return None
        incident_type = self.rng.choice([IncidentType.ACCIDENT, IncidentType.BREAKDOWN, IncidentType.CONGESTION])
        severity = self.rng.choice([Severity.LOW, Severity.MEDIUM, Severity.HIGH])
        return incident_type, severity
