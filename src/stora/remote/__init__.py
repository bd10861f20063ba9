"""Remote store access."""

from stora.remote.client import RemoteClient
from stora.remote.connectivity import Connectivity, StaticConnectivity

__all__ = ["RemoteClient", "Connectivity", "StaticConnectivity"]
