"""APSAR Emergency API: call-out and incident coordination backend."""

__version__ = "1.0.0"
