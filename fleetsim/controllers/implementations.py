import json
import logging
import requests
from typing import Optional
from pydantic import ValidationError
from fleetsim.controllers.base import DecisionProvider
from fleetsim.domain import config
from fleetsim.domain.errors import ProviderUnavailable
from fleetsim.domain.models import AIAction, AIDecision, DecisionContext, Personality, Severity

logger = logging.getLogger(__name__)

PERSONALITY_TRAITS = {
    Personality.AGGRESSIVE: "You are a bold, speed-focused driver who values time over caution.",
    Personality.CAUTIOUS: "You are a careful, safety-first driver who never rushes.",
    Personality.BALANCED: "You are a practical driver who balances speed, safety and efficiency.",
    Personality.EFFICIENT: "You are a cost-conscious driver focused on fuel economy.",
}

class HeuristicDecisionProvider(DecisionProvider):
    """Rule-based decisions, used when no language model is configured."""

    def make_decision(self, context: DecisionContext) -> AIDecision:
        vehicle = context.vehicle
        if vehicle.fuel < 10:
            return AIDecision(action=AIAction.REFUEL, reasoning="Fuel critically low, finding a station.",
                              target_speed=30, priority=Severity.CRITICAL, confidence=1.0)
        if vehicle.fuel < config.LOW_FUEL_THRESHOLD:
            return AIDecision(action=AIAction.REFUEL, reasoning="Fuel low, plan a refuel stop.",
                              target_speed=40, priority=Severity.HIGH, confidence=0.9)
        severe = [i for i in context.nearby_incidents if i.severity in (Severity.HIGH, Severity.CRITICAL)]
        if severe:
            return AIDecision(action=AIAction.REROUTE, reasoning=f"{severe[0].type.value} ahead, seeking an alternative.",
                              target_speed=35, priority=Severity.HIGH, confidence=0.8)
        if context.environment.global_congestion > config.HIGH_CONGESTION:
            return AIDecision(action=AIAction.SLOW_DOWN, reasoning="Heavy traffic, easing off.",
                              target_speed=35, priority=Severity.MEDIUM, confidence=0.85)
        if context.environment.weather_speed_factor < 0.7:
            return AIDecision(action=AIAction.SLOW_DOWN, reasoning="Hazardous weather, reducing speed.",
                              target_speed=30, priority=Severity.MEDIUM, confidence=0.85)
        if vehicle.personality == Personality.AGGRESSIVE and context.environment.global_congestion < 30:
            return AIDecision(action=AIAction.SPEED_UP, reasoning="Roads are clear, making up time.",
                              target_speed=70, priority=Severity.LOW, confidence=0.7)
        return AIDecision(action=AIAction.CONTINUE, reasoning="Conditions normal, proceeding.",
                          target_speed=60, priority=Severity.LOW, confidence=0.95)

def build_prompt(context: DecisionContext) -> str:
    vehicle = context.vehicle
    env = context.environment
    lines = [
        PERSONALITY_TRAITS.get(vehicle.personality, PERSONALITY_TRAITS[Personality.BALANCED]),
        f"You are driving {vehicle.name or vehicle.id} ({vehicle.vehicle_class.value}).",
        f"Location: {vehicle.location.lat:.4f}, {vehicle.location.lng:.4f}.",
    ]
    if vehicle.destination is not None:
        lines.append(f"Destination: {vehicle.destination.lat:.4f}, {vehicle.destination.lng:.4f}.")
    lines += [
        f"Fuel: {round(vehicle.fuel)}%. Speed: {round(vehicle.speed)} km/h. "
        f"Cargo: {vehicle.cargo_weight:.0f}/{vehicle.cargo_capacity:.0f} kg.",
        f"Weather: {env.condition.value}, {env.temperature:.0f}C, visibility {env.visibility_m:.0f} m.",
        f"Global congestion: {env.global_congestion:.0f}%. Rush hour: {'yes' if env.rush_hour else 'no'}.",
    ]
    for incident in context.nearby_incidents:
        lines.append(f"Incident: {incident.type.value} ({incident.severity.value}), {incident.description}.")
    for zone in context.nearby_zones:
        lines.append(f"Zone {zone.name}: congestion {zone.congestion:.0f}%, trend {zone.trend.value}.")
    if context.optimized_route is not None:
        lines.append(f"Route: {context.optimized_route.reasoning}")
    lines.append(
        "Reply with a single JSON object and nothing else, with keys: "
        "action (one of " + ", ".join(a.value for a in AIAction) + "), "
        "reasoning (string), target_speed (number or null), "
        "priority (low, medium, high or critical), confidence (0 to 1)."
    )
    return "\n".join(lines)

def parse_decision(content: str) -> AIDecision:
    """Strict parse of the model reply. Anything off-schema is a provider failure."""
    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[4:]
    try:
        return AIDecision.model_validate_json(text)
    except ValidationError as e:
        raise ProviderUnavailable(f"Decision did not match schema: {e.error_count()} errors") from e

class OpenRouterDecisionProvider(DecisionProvider):
    def __init__(self, api_key: str, model: str = config.OPENROUTER_MODEL, url: str = config.OPENROUTER_URL,
                 session: Optional[requests.Session] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model
        self.url = url
        self.session = session or requests.Session()

    def make_decision(self, context: DecisionContext) -> AIDecision:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You are a delivery driver deciding your next move."},
                {"role": "user", "content": build_prompt(context)},
            ],
            "temperature": 0.7,
            "max_tokens": 200,
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            response = self.session.post(self.url, data=json.dumps(payload), headers=headers, timeout=config.AI_TIMEOUT)
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except requests.RequestException as e:
            raise ProviderUnavailable(f"Decision request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderUnavailable(f"Unexpected decision response: {e}") from e

        decision = parse_decision(content)
        logger.debug("Vehicle %s decision: %s (%s)", context.vehicle.id, decision.action.value, decision.reasoning)
        return decision
