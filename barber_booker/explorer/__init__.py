"""Browser-driven endpoint discovery."""

from .monitor import NetworkMonitor, NetworkRequest, NetworkResponse, is_api_request, run_exploration

__all__ = ["NetworkMonitor", "NetworkRequest", "NetworkResponse", "is_api_request", "run_exploration"]
