import unittest
from fleetsim.domain import config
from fleetsim.domain.models import (
    AIAction, AIDecision, Coordinate, DensityMarker, DensitySeverity, Incident, IncidentType, Severity,
    VehicleClass, VehicleState
)
from fleetsim.systems.fuel_system import FuelSystem, consume
from fleetsim.systems.speed_system import SpeedSystem, ai_adjustment, base_speed, density_factor, incident_factor

HERE = Coordinate(lat=12.97, lng=77.59)
NEARBY = Coordinate(lat=12.972, lng=77.59) # about 220 m north
FAR = Coordinate(lat=13.0, lng=77.59)

def incident(location, delay, severity=Severity.MEDIUM):
    return Incident(id="INC-1", type=IncidentType.ACCIDENT, severity=severity, location=location, delay_minutes=delay)

def decision(action):
    return AIDecision(action=action, reasoning="test")

class TestSpeedModel(unittest.TestCase):
    def test_base_speed_by_class(self):
        self.assertEqual(base_speed(VehicleClass.CAR), 60.0)
        self.assertEqual(base_speed(VehicleClass.TRUCK), 40.0)
        self.assertEqual(base_speed("bicycle"), config.DEFAULT_BASE_SPEED)

    def test_incident_within_radius_halves_speed(self):
        self.assertAlmostEqual(incident_factor(HERE, [incident(NEARBY, 30)]), 0.5)

    def test_incident_slowdown_is_capped(self):
        self.assertAlmostEqual(incident_factor(HERE, [incident(NEARBY, 120)]), 0.5)

    def test_slowest_incident_wins(self):
        self.assertAlmostEqual(incident_factor(HERE, [incident(NEARBY, 6), incident(NEARBY, 18)]), 0.7)

    def test_distant_incident_ignored(self):
        self.assertEqual(incident_factor(HERE, [incident(FAR, 30)]), 1.0)

    def test_red_marker_overrides_yellow(self):
        markers = [
            DensityMarker(location=HERE, severity=DensitySeverity.YELLOW),
            DensityMarker(location=HERE, severity=DensitySeverity.RED),
        ]
        self.assertEqual(density_factor(HERE, markers), (config.DENSITY_FACTOR_RED, DensitySeverity.RED))

    def test_yellow_marker(self):
        markers = [DensityMarker(location=HERE, severity=DensitySeverity.YELLOW)]
        self.assertEqual(density_factor(HERE, markers), (config.DENSITY_FACTOR_YELLOW, DensitySeverity.YELLOW))

    def test_marker_out_of_range(self):
        markers = [DensityMarker(location=NEARBY, severity=DensitySeverity.RED)]
        self.assertEqual(density_factor(HERE, markers), (1.0, None))

    def test_ai_adjustment(self):
        self.assertAlmostEqual(ai_adjustment(1.0, decision(AIAction.SLOW_DOWN)), 0.7)
        self.assertAlmostEqual(ai_adjustment(0.5, decision(AIAction.SPEED_UP)), 0.6)
        self.assertAlmostEqual(ai_adjustment(1.1, decision(AIAction.SPEED_UP)), config.AI_SPEED_CAP)
        self.assertEqual(ai_adjustment(0.8, decision(AIAction.CONTINUE)), 0.8)
        self.assertEqual(ai_adjustment(0.8, None), 0.8)

    def test_profile_combines_factors(self):
        vehicle = VehicleState(id="V1", vehicle_class=VehicleClass.CAR, location=HERE)
        markers = [DensityMarker(location=HERE, severity=DensitySeverity.YELLOW)]
        profile = SpeedSystem().profile(vehicle, [incident(NEARBY, 30)], markers, environment_factor=0.8)

        self.assertAlmostEqual(profile.base_factor, 0.4)
        self.assertAlmostEqual(profile.effective_speed, 60.0 * 0.4 * 0.6)
        self.assertFalse(profile.red_zone)

    def test_profile_with_decision(self):
        vehicle = VehicleState(id="V1", vehicle_class=VehicleClass.VAN, location=HERE)
        profile = SpeedSystem().profile(vehicle, [], [], 1.0, decision(AIAction.SLOW_DOWN))
        self.assertAlmostEqual(profile.effective_speed, 35.0)

class TestFuelModel(unittest.TestCase):
    def test_normal_consumption(self):
        self.assertAlmostEqual(consume(50.0, 1.0, 40.0), 29.5)

    def test_slow_traffic_burns_more(self):
        self.assertAlmostEqual(consume(50.0, 1.0, 10.0), 19.5)

    def test_empty_tank_stays_empty(self):
        self.assertEqual(consume(0.0, 1.0, 40.0), 0.0)
        self.assertEqual(consume(0.2, 0.0, 0.0), 0.0)

    def test_stationary_idle_drain(self):
        self.assertAlmostEqual(consume(80.0, 0.0, 0.0), 79.5)

    def test_low_fuel_tracking(self):
        low = set()
        fuel = FuelSystem(low)
        with self.assertLogs("fleetsim.systems.fuel_system", level="WARNING"):
            remaining = fuel.update("V1", "Van", 21.0, 0.1, 40.0)
        self.assertLess(remaining, config.LOW_FUEL_THRESHOLD)
        self.assertIn("V1", low)

        self.assertEqual(fuel.refill("V1"), 100.0)
        self.assertNotIn("V1", low)

if __name__ == '__main__':
    unittest.main()
