"""Sandbox account lease plane."""

from .main import LeasePlane, create_lease_plane
from .settings import LeasePlaneSettings

__all__ = ['LeasePlane', 'LeasePlaneSettings', 'create_lease_plane']
