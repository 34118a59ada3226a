"""Task handler registry.

A handler takes the job payload and returns the generated text, or raises.
Handlers may be coroutine functions. They never touch the job store; the
worker owns every status write.
"""
import asyncio
import importlib
import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from .errors import UnknownTaskError
from .models import TaskName

Handler = Callable[[dict[str, Any]], str | Awaitable[str]]

async def _drive(awaitable):
    return await awaitable

class HandlerRegistry:
    def __init__(self, handlers: Mapping[str, Handler]):
        resolved: dict[TaskName, Handler] = {}
        for name, fn in handlers.items():
            try:
                task = TaskName(name)
            except ValueError:
                raise UnknownTaskError(name) from None
            resolved[task] = fn

        missing = sorted(t.value for t in TaskName if t not in resolved)
        if missing:
            raise ValueError(f"no handler registered for: {', '.join(missing)}")
        self._handlers = resolved

    def get(self, task: str) -> Handler:
        try:
            return self._handlers[TaskName(task)]
        except ValueError:
            raise UnknownTaskError(task) from None

    def run(self, task: str, payload: dict[str, Any]) -> str:
        out = self.get(task)(payload)
        if inspect.isawaitable(out):
            out = asyncio.run(_drive(out))
        if not isinstance(out, str):
            raise TypeError(f"handler for {task} returned {type(out).__name__}, expected str")
        return out

def load_handlers(module_path: str) -> HandlerRegistry:
    """Build a registry from ``module_path.HANDLERS``."""
    module = importlib.import_module(module_path)
    return HandlerRegistry(module.HANDLERS)
