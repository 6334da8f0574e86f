from asyncio import Condition
from contextlib import asynccontextmanager
from typing import AsyncIterator


class SlotGate:
    """Lets submissions run side by side while a slot transition runs alone.

    A transition waits for in-flight submissions to finish, and submissions
    arriving while a transition waits or runs queue behind it.
    """

    def __init__(self):
        self.condition = Condition()
        self.submissions = 0  # submissions inside the gate
        self.waiting_transitions = 0
        self.transitioning = False

    @asynccontextmanager
    async def submission(self) -> AsyncIterator[None]:
        async with self.condition:
            await self.condition.wait_for(
                lambda: not self.transitioning and self.waiting_transitions == 0
            )
            self.submissions += 1
        try:
            yield
        finally:
            async with self.condition:
                self.submissions -= 1
                self.condition.notify_all()

    @asynccontextmanager
    async def transition(self) -> AsyncIterator[None]:
        """Hold the gate alone while a slot starts or stops"""
        async with self.condition:
            self.waiting_transitions += 1
            try:
                await self.condition.wait_for(
                    lambda: not self.transitioning and self.submissions == 0
                )
            finally:
                self.waiting_transitions -= 1
                self.condition.notify_all()
            self.transitioning = True
        try:
            yield
        finally:
            async with self.condition:
                self.transitioning = False
                self.condition.notify_all()
