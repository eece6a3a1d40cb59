"""Exceptions shared by the sensor drivers."""


class SensorAbsentError(Exception):
    """A sensor, or the bus it hangs off, is not present."""


class SensorReadError(Exception):
    """A measurement could not be completed."""
