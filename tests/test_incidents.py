import random
import unittest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from fleetsim.domain.models import Coordinate, Incident, IncidentType, Severity, WeatherCondition, Zone
from fleetsim.simulation.incidents import (
    IncidentFeed, default_hotspots, flow_description, is_incident_rush_hour
)

T0 = datetime(2024, 1, 3, 12, 0)

class TestIncident(unittest.TestCase):
    def test_ttl_by_severity(self):
        ttl = {
            s: Incident(id="I", type=IncidentType.ACCIDENT, severity=s, location=Coordinate(lat=0, lng=0)).ttl_minutes
            for s in Severity
        }
        self.assertEqual(ttl, {Severity.CRITICAL: 60, Severity.HIGH: 45, Severity.MEDIUM: 30, Severity.LOW: 30})

    def test_expiry(self):
        incident = Incident(id="I", type=IncidentType.ROADWORK, severity=Severity.HIGH,
                            location=Coordinate(lat=0, lng=0), created_at=T0)
        self.assertFalse(incident.is_expired(T0 + timedelta(minutes=45)))
        self.assertTrue(incident.is_expired(T0 + timedelta(minutes=46)))

class TestIncidentFeed(unittest.TestCase):
    def test_hotspot_severity(self):
        hotspots = {h.name: h for h in default_hotspots()}
        self.assertEqual(hotspots["Silk Board Junction"].severity, Severity.HIGH)
        self.assertEqual(hotspots["MG Road"].severity, Severity.MEDIUM)

    def test_spawn_ids_and_overrides(self):
        feed = IncidentFeed(rng=random.Random(1))
        first = feed.spawn(now=T0)
        second = feed.spawn(now=T0, incident_type=IncidentType.ACCIDENT, severity=Severity.HIGH)

        self.assertEqual((first.id, second.id), ("INC-1", "INC-2"))
        self.assertEqual(second.type, IncidentType.ACCIDENT)
        self.assertEqual(second.severity, Severity.HIGH)
        self.assertGreaterEqual(second.delay_minutes, 15)
        self.assertLessEqual(second.delay_minutes, 30)
        self.assertEqual(len(feed.active), 2)

    def test_spawns_from_worker_threads_are_kept(self):
        feed = IncidentFeed(rng=random.Random(3))
        with ThreadPoolExecutor(max_workers=8) as pool:
            spawned = list(pool.map(lambda _: feed.spawn(now=T0), range(100)))
            list(pool.map(lambda _: feed.current(now=T0), range(20)))

        ids = [i.id for i in feed.active]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertTrue({i.id for i in spawned} <= set(ids))

    def test_spawn_near_a_hotspot(self):
        feed = IncidentFeed(rng=random.Random(2))
        incident = feed.spawn(now=T0)
        hotspot = next(h for h in feed.hotspots if h.name == incident.affected_roads[0])
        self.assertLessEqual(abs(incident.location.lat - hotspot.location.lat), 0.0025)
        self.assertLessEqual(abs(incident.location.lng - hotspot.location.lng), 0.0025)

    def test_same_seed_same_incidents(self):
        a = IncidentFeed(rng=random.Random(42))
        b = IncidentFeed(rng=random.Random(42))
        for _ in range(5):
            x = a.spawn(WeatherCondition.STORM, True, T0)
            y = b.spawn(WeatherCondition.STORM, True, T0)
            self.assertEqual((x.type, x.severity, x.location, x.delay_minutes), (y.type, y.severity, y.location, y.delay_minutes))

    def test_current_drops_expired(self):
        feed = IncidentFeed(rng=random.Random(5))
        feed.spawn(now=T0, severity=Severity.LOW)
        feed.spawn(now=T0, severity=Severity.CRITICAL)

        active = feed.current(WeatherCondition.CLEAR, 3, 6, now=T0 + timedelta(minutes=40))
        severities = [i.severity for i in active if i.created_at == T0]
        self.assertEqual(severities, [Severity.CRITICAL])

    def test_summary_levels(self):
        feed = IncidentFeed(rng=random.Random(9))
        self.assertEqual(feed.summary().avg_congestion, "normal")
        for _ in range(3):
            feed.spawn(now=T0, severity=Severity.HIGH)
        summary = feed.summary()
        self.assertEqual((summary.total_incidents, summary.critical_incidents, summary.avg_congestion),
                         (3, 3, "moderate"))

    def test_zone_traffic(self):
        feed = IncidentFeed(rng=random.Random(9))
        zones = [
            Zone(id="Z1", name="Silk Board", center=Coordinate(lat=12.9166, lng=77.6222), radius_m=1500),
            Zone(id="Z2", name="Unknown"),
        ]
        quiet = feed.zone_traffic(zones, WeatherCondition.CLEAR, 13)[0]
        self.assertEqual((quiet.avg_speed, quiet.congestion_level, quiet.active_incidents), (40, 20, 0))

        rush = feed.zone_traffic(zones, WeatherCondition.STORM, 8)
        self.assertEqual(len(rush), 1)
        self.assertEqual(rush[0].avg_speed, 8)
        self.assertEqual(rush[0].congestion_level, 100)

    def test_helpers(self):
        self.assertTrue(is_incident_rush_hour(10))
        self.assertTrue(is_incident_rush_hour(20))
        self.assertFalse(is_incident_rush_hour(12))
        self.assertTrue(flow_description(85).startswith("SEVERE"))
        self.assertTrue(flow_description(5).startswith("FREE"))

if __name__ == '__main__':
    unittest.main()
