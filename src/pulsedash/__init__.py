"""pulsedash - live system telemetry dashboard."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pulsedash")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
