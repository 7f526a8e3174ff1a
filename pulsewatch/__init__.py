"""PulseWatch - endpoint probing, degradation detection and incident tracking."""

__version__ = "1.0.0"
