import logging
import requests
from typing import Any, Dict, Optional, Tuple
from fleetsim.domain import config
from fleetsim.domain.errors import ProviderUnavailable
from fleetsim.domain.models import WeatherCondition, WeatherReport

logger = logging.getLogger(__name__)

# Live-weather speed impact; the simulated engine uses its own table
LIVE_CONDITION_IMPACT = {
    WeatherCondition.CLEAR: 1.0,
    WeatherCondition.CLOUDY: 0.95,
    WeatherCondition.RAIN: 0.75,
    WeatherCondition.HEAVY_RAIN: 0.5,
    WeatherCondition.FOG: 0.6,
    WeatherCondition.STORM: 0.3,
}

def map_condition(main: str, code: int) -> WeatherCondition:
    """OpenWeatherMap condition group -> simulation condition."""
    if 200 <= code < 300:
        return WeatherCondition.STORM
    if 300 <= code < 400 or 500 <= code <= 504:
        return WeatherCondition.RAIN
    if 520 <= code < 700:
        # heavy rain and snow
        return WeatherCondition.HEAVY_RAIN
    if 700 <= code < 800:
        return WeatherCondition.FOG
    if main == "Clouds":
        return WeatherCondition.CLOUDY
    return WeatherCondition.CLEAR

def live_speed_factor(condition: WeatherCondition, wind_ms: float, visibility_m: float) -> float:
    factor = LIVE_CONDITION_IMPACT[condition]

    wind_kmh = wind_ms * 3.6
    if wind_kmh > 50:
        factor *= 0.8
    elif wind_kmh > 30:
        factor *= 0.9

    if visibility_m < 1000:
        factor *= 0.4
    elif visibility_m < 3000:
        factor *= 0.7
    elif visibility_m < 5000:
        factor *= 0.85

    return max(0.3, min(1.0, factor))

def parse_report(data: Dict[str, Any]) -> WeatherReport:
    try:
        weather = data["weather"][0]
        condition = map_condition(weather.get("main", ""), int(weather["id"]))
        wind_ms = float(data.get("wind", {}).get("speed", 0.0))
        visibility = float(data.get("visibility") or 10000)
        return WeatherReport(
            condition=condition,
            temperature=float(data["main"]["temp"]),
            visibility_m=visibility,
            wind_speed=wind_ms * 3.6,
            speed_factor=live_speed_factor(condition, wind_ms, visibility),
        )
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise ProviderUnavailable(f"Unexpected weather payload: {e}") from e

class OpenWeatherMapProvider:
    def __init__(self, api_key: str, location: Tuple[float, float] = config.DEFAULT_CITY,
                 url: str = config.OPENWEATHER_URL, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.location = location
        self.url = url
        self.session = session or requests.Session()

    def current(self) -> WeatherReport:
        if not self.api_key:
            raise ProviderUnavailable("No weather API key configured")
        lat, lng = self.location
        params = {"lat": lat, "lon": lng, "appid": self.api_key, "units": "metric"}
        try:
            response = self.session.get(self.url, params=params, timeout=config.WEATHER_TIMEOUT)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ProviderUnavailable(f"Weather fetch failed: {e}") from e
        report = parse_report(data)
        logger.info("Weather: %s, %.1fC, visibility %.0fm, speed factor %.2f",
                    report.condition.value, report.temperature, report.visibility_m, report.speed_factor)
        return report
