"""
zkchannel Runtime

ProtocolConfig lives here. BridgeContext (zkchannel.runtime.context) is
imported explicitly, since it depends on the bridge itself.
"""

from zkchannel.runtime.config import ProtocolConfig

__all__ = ["ProtocolConfig"]
