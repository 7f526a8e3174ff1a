"""Monitoring pipeline components for PulseWatch."""
