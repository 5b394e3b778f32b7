from .base import (
    HttpTransport,
    MultipartForm,
    TransportConfig,
    TransportEvent,
    emit_transport_event,
    set_transport_observer,
)
from .http import HttpxTransport
