"""FleetOps Core - permissions, document alerts, vehicle auto-sync and session timeout."""

__version__ = "0.1.0"
