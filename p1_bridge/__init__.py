"""MQTT bridge for DSMR smart meter P1 telegrams."""
