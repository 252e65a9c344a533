"""adaudit - sync orchestration client for the ad creative audit dashboard."""

__version__ = "0.1.0"
