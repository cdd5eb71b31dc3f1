from marketplace.events.bus import EventBus, get_event_bus, stage_event
from marketplace.events.models import PAYLOAD_MODELS, DomainEvent

__all__ = ["DomainEvent", "EventBus", "PAYLOAD_MODELS", "get_event_bus", "stage_event"]
