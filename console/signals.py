"""
Tiny synchronous signal used to decouple state owners from their observers.

The session store, the transport's 401 handler, the authorization guard and
list controllers publish through it; routers and views subscribe. Receivers
run synchronously on the event loop thread in connection order.
"""
from __future__ import annotations

from typing import Any, Callable, List

Receiver = Callable[..., Any]


class Signal:
    def __init__(self, name: str) -> None:
        self.name = name
        self._receivers: List[Receiver] = []

    def connect(self, receiver: Receiver) -> Receiver:
        if receiver not in self._receivers:
            self._receivers.append(receiver)
        return receiver

    def disconnect(self, receiver: Receiver) -> None:
        try:
            self._receivers.remove(receiver)
        except ValueError:
            pass

    def emit(self, *args: Any) -> None:
        # Copy: receivers may disconnect themselves while being notified
        for receiver in list(self._receivers):
            receiver(*args)

    @property
    def receivers(self) -> int:
        return len(self._receivers)
