"""Player adapters: one per way a backend exposes playback progress."""

from .base import EndedCallback, PlayerAdapter, ProgressCallback
from .callback import CallbackControlAdapter, CallbackControlHandle
from .messages import (
    CrossOriginMessageAdapter,
    InboundMessage,
    MessageChannel,
    message_adapter_factory,
    normalize_origin,
)
from .polling import (
    PlayerState,
    PollingControlAdapter,
    PollingControlHandle,
    polling_adapter_factory,
)


__all__ = [
    "CallbackControlAdapter",
    "CallbackControlHandle",
    "CrossOriginMessageAdapter",
    "EndedCallback",
    "InboundMessage",
    "MessageChannel",
    "PlayerAdapter",
    "PlayerState",
    "PollingControlAdapter",
    "PollingControlHandle",
    "ProgressCallback",
    "message_adapter_factory",
    "normalize_origin",
    "polling_adapter_factory",
]
