"""Job message base class and handler registry.

- Message: dataclass base for every job; `queue` names the queue it travels on
- @handler: register the async function that runs a message type
- HandlerRegistry: type name -> (message class, handler)

Example:
    @dataclass
    class EnrichContact(Message):
        queue: ClassVar[str] = QueueName.ENRICH
        enrichment_id: int = 0

    @handler(EnrichContact)
    async def handle_enrich(msg: EnrichContact):
        await enrichment_service.run_enrichment(msg.enrichment_id)
"""

from __future__ import annotations

from abc import ABC
from dataclasses import asdict, dataclass, fields
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Optional, Tuple, Type, TypeVar

M = TypeVar("M", bound="Message")

HandlerFunc = Callable[[M], Awaitable[Any]]


@dataclass
class Message(ABC):
    """Base class for queue messages.

    The class name travels as '_type' so the consumer can rebuild it.
    """

    queue: ClassVar[str] = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["_type"] = self.__class__.__name__
        return data

    @classmethod
    def from_dict(cls: Type[M], data: dict) -> M:
        """Rebuild from a dict, ignoring '_type', retry metadata and unknown keys."""
        field_names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in field_names})


class HandlerRegistry:
    """Maps message type names to their class and handler.

    Use the @handler decorator instead of calling this directly.
    """

    _handlers: Dict[str, Tuple[Type[Message], HandlerFunc]] = {}

    @classmethod
    def register(cls, message_cls: Type[M], handler_func: HandlerFunc[M]) -> None:
        cls._handlers[message_cls.__name__] = (message_cls, handler_func)

    @classmethod
    def get_handler(cls, type_name: str) -> Optional[Tuple[Type[Message], HandlerFunc]]:
        return cls._handlers.get(type_name)

    @classmethod
    def queues(cls) -> Dict[str, List[str]]:
        """Queue name -> message types handled on it."""
        result: Dict[str, List[str]] = {}
        for type_name, (message_cls, _) in cls._handlers.items():
            result.setdefault(message_cls.queue, []).append(type_name)
        return result


def handler(message_cls: Type[M]) -> Callable[[HandlerFunc[M]], HandlerFunc[M]]:
    """Decorator to register a handler for a message type."""

    def decorator(func: HandlerFunc[M]) -> HandlerFunc[M]:
        HandlerRegistry.register(message_cls, func)
        return func

    return decorator
