"""Edges of the system: telemetry output sinks and the patient data simulator."""
