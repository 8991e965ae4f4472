from dataclasses import dataclass


@dataclass(frozen=True)
class MonitoringLocation:
    name: str
    state: str
    latitude: float
    longitude: float


# States the sales organisation operates in
SERVICE_STATES = ["PA", "NJ", "DE", "MD", "VA", "NY", "OH", "WV"]

# Forecast check points: one central city per service area
MONITORING_LOCATIONS = [
    MonitoringLocation(name="Philadelphia", state="PA", latitude=39.9526, longitude=-75.1652),
    MonitoringLocation(name="Pittsburgh", state="PA", latitude=40.4406, longitude=-79.9959),
    MonitoringLocation(name="Trenton", state="NJ", latitude=40.2206, longitude=-74.7597),
    MonitoringLocation(name="Wilmington", state="DE", latitude=39.7391, longitude=-75.5398),
    MonitoringLocation(name="Baltimore", state="MD", latitude=39.2904, longitude=-76.6122),
    MonitoringLocation(name="Richmond", state="VA", latitude=37.5407, longitude=-77.4360),
    MonitoringLocation(name="New York", state="NY", latitude=40.7128, longitude=-74.0060),
    MonitoringLocation(name="Columbus", state="OH", latitude=39.9612, longitude=-82.9988),
]

# Centre used for region-wide SPC outlook predictions
REGIONAL_CENTER = (39.5, -76.5)
REGIONAL_RADIUS_MILES = 100.0
