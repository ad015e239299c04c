"""k1s0 bus library."""

from .config import BusSettings, load_settings
from .dispatch import MessageDispatcher
from .emitter import Emitter
from .exceptions import BusError, BusErrorCodes
from .listener import on, validate, with_defaults
from .logger import new_logger
from .lookup import LookupClient
from .models import BrokerNode, EmitterConfig, ListenerConfig, Message, encode_message
from .noop import NoOpEmitter, NoOpTransport
from .provisioner import TopicProvisioner, ensure_topic
from .transport import NsqTransport, Transport

__all__ = [
    "on",
    "validate",
    "with_defaults",
    "ListenerConfig",
    "Message",
    "BrokerNode",
    "EmitterConfig",
    "encode_message",
    "MessageDispatcher",
    "Emitter",
    "LookupClient",
    "TopicProvisioner",
    "ensure_topic",
    "Transport",
    "NsqTransport",
    "NoOpEmitter",
    "NoOpTransport",
    "BusSettings",
    "load_settings",
    "new_logger",
    "BusError",
    "BusErrorCodes",
]
