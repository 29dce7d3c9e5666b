"""
Missy Signals — events and ordered async hook chains.

Two layers:

    EventEmitter  – fire-and-forget listeners keyed by event name
                    (driver connect/disconnect, hook notifications)
    MissyHooks    – ordered middleware chains keyed by hook name; every
                    chain invocation is also emitted as an event

Usage:
    hooks = MissyHooks(["before_insert", "after_insert"])

    @hooks.hook("before_insert")
    async def stamp(entities, ctx):
        for entity in entities:
            entity["ctime"] = datetime.now()

    hooks.on("after_insert", lambda entities, ctx: print(len(entities)))

    await hooks.invoke_hook("before_insert", entities, ctx)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger("missy.signals")

__all__ = ["EventEmitter", "MissyHooks"]


def _callable_name(fn: Callable) -> str:
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)


class EventEmitter:
    """
    Named-event listeners.

    Listeners can be sync or async callables and receive the positional
    arguments given to ``emit()``. A failing listener is logged and does
    not prevent the others from running.
    """

    def __init__(self):
        # event -> [(listener, once)]
        self._listeners: Dict[str, List[Tuple[Callable, bool]]] = {}

    def on(self, event: str, listener: Callable = None, *, once: bool = False):
        """
        Add a listener. Can be used as a decorator:

            @emitter.on("connect")
            def connected(): ...
        """
        def _decorator(fn: Callable) -> Callable:
            self._listeners.setdefault(event, []).append((fn, once))
            return fn

        if listener is not None:
            return _decorator(listener)
        return _decorator

    def once(self, event: str, listener: Callable = None):
        """Add a listener that is removed after its first call."""
        return self.on(event, listener, once=True)

    def off(self, event: str, listener: Callable = None) -> bool:
        """
        Remove a listener, or every listener of the event when none given.

        Returns True if anything was removed.
        """
        entries = self._listeners.get(event)
        if not entries:
            return False
        if listener is None:
            del self._listeners[event]
            return True
        for i, (fn, _) in enumerate(entries):
            if fn is listener:
                entries.pop(i)
                return True
        return False

    def listeners(self, event: str) -> List[Callable]:
        return [fn for fn, _ in self._listeners.get(event, ())]

    def has_listeners(self, event: str) -> bool:
        return bool(self._listeners.get(event))

    async def emit(self, event: str, *args: Any) -> bool:
        """
        Call every listener of the event in registration order.

        Returns:
            True if the event had listeners
        """
        entries = self._listeners.get(event)
        if not entries:
            return False

        # Snapshot: listeners may (un)subscribe while running
        snapshot = list(entries)
        self._listeners[event] = [entry for entry in entries if not entry[1]]

        for fn, _ in snapshot:
            try:
                result = fn(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.error(
                    f"Event '{event}' listener {_callable_name(fn)} "
                    f"raised {exc.__class__.__name__}: {exc}"
                )
        return True

    def wait_for(self, event: str) -> asyncio.Future:
        """
        Future resolved with the arguments of the next ``event``.

        Must be called with a running event loop.
        """
        future = asyncio.get_running_loop().create_future()

        def _resolve(*args):
            if not future.done():
                future.set_result(args)

        self.once(event, _resolve)
        return future


class MissyHooks(EventEmitter):
    """
    Ordered async middleware chains.

    Handlers registered for a hook run strictly sequentially in
    registration order; each one is awaited before the next starts, and the
    first exception aborts the chain and propagates to the caller. After the
    chain, an event with the same name is emitted with the same arguments,
    whether the chain succeeded or not.

    Args:
        hook_names: Supported hook names. When given, every other name is
            rejected with ValueError; when None, any name is accepted.
    """

    def __init__(self, hook_names: Optional[Iterable[str]] = None):
        super().__init__()
        self._hook_names = tuple(hook_names) if hook_names is not None else None
        self._hooks: Dict[str, List[Callable]] = {}

    @property
    def hook_names(self) -> Optional[Tuple[str, ...]]:
        return self._hook_names

    def _check_hook_name(self, name: str) -> None:
        if self._hook_names is not None and name not in self._hook_names:
            raise ValueError(f'Using an unsupported hook name: "{name}"')

    def register_hook(self, name: str, handler: Callable) -> Callable:
        """Append a handler to the hook chain."""
        self._check_hook_name(name)
        self._hooks.setdefault(name, []).append(handler)
        return handler

    def unregister_hook(self, name: str, handler: Callable) -> bool:
        """Remove a handler from the hook chain."""
        self._check_hook_name(name)
        chain = self._hooks.get(name)
        if not chain or handler not in chain:
            return False
        chain.remove(handler)
        return True

    def unregister_all_hooks(self, name: str) -> None:
        self._hooks.pop(name, None)

    def hook(self, name: str):
        """
        Decorator form of ``register_hook``:

            @model.hooks.hook("before_save")
            def touch(entities, ctx): ...
        """
        self._check_hook_name(name)

        def _decorator(fn: Callable) -> Callable:
            return self.register_hook(name, fn)

        return _decorator

    def get_hooks(self, name: str) -> List[Callable]:
        return list(self._hooks.get(name, ()))

    async def invoke_hook(self, name: str, *args: Any) -> Tuple[Any, ...]:
        """
        Run the hook chain, then emit the same-named event.

        Returns:
            The arguments, as a tuple
        """
        self._check_hook_name(name)
        try:
            for handler in list(self._hooks.get(name, ())):
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
        finally:
            await self.emit(name, *args)
        return args

    def __repr__(self) -> str:
        registered = sum(len(chain) for chain in self._hooks.values())
        return f"<MissyHooks hooks={registered}>"
