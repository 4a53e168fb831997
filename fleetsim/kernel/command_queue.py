import logging
from collections import deque
from typing import Deque, List
from fleetsim.application.commands import Command
from fleetsim.domain import config

logger = logging.getLogger(__name__)

class CommandQueue:
    """
    External actions waiting for the start of the next tick, in arrival order.
    Bounded; when full the oldest action is dropped.
    """
    def __init__(self, limit: int = config.COMMAND_QUEUE_LIMIT):
        self._pending: Deque[Command] = deque(maxlen=limit)

    def add(self, command: Command):
        if len(self._pending) == self._pending.maxlen:
            logger.warning("Command queue full, dropping %s", type(self._pending[0]).__name__)
        self._pending.append(command)

    def drain(self) -> List[Command]:
        commands = list(self._pending)
        self._pending.clear()
        return commands

    def pending(self) -> List[Command]:
        return list(self._pending)

    def __len__(self):
        return len(self._pending)
