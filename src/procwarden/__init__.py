"""procwarden: a worker restart supervisor and a backing service controller."""

__version__ = "0.1.0"
