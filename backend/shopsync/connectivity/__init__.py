"""Connectivity monitoring package."""
from shopsync.connectivity.monitor import ConnectivityMonitor
from shopsync.connectivity.state import ConnectivityState

__all__ = ["ConnectivityMonitor", "ConnectivityState"]
