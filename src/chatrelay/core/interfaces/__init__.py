"""
Core Protocol Interfaces

Protocol interfaces for the external collaborators of chatrelay. Protocols
keep the domain and application layers independent of aiohttp and of the
configuration file format.

Available Protocols:
    - ChannelTransportProtocol: send / edit / long-poll on a chat channel
    - ConfigStoreProtocol: configuration persistence
    - LoggerProtocol: injected logging
"""

from chatrelay.core.interfaces.channel_transport import ChannelTransportProtocol
from chatrelay.core.interfaces.config_store import ConfigStoreProtocol
from chatrelay.core.interfaces.logging import LoggerProtocol

__all__ = [
    "ChannelTransportProtocol",
    "ConfigStoreProtocol",
    "LoggerProtocol",
]
