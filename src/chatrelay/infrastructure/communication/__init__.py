"""Communication infrastructure adapters.

- TelegramTransport: Telegram Bot API implementation of ChannelTransportProtocol
"""

from chatrelay.infrastructure.communication.telegram_transport import (
    DetectedChat,
    TelegramTransport,
    parse_update,
)

__all__ = ["DetectedChat", "TelegramTransport", "parse_update"]
