import asyncio
import inspect
from collections.abc import Callable
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from jobqueue.core.exceptions import (
    DuplicateHandlerError,
    RegistryFrozenError,
    UnknownJobError,
)

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations.

    Names are unique: registering a name twice is a configuration error,
    raised at registration time rather than discovered at dispatch.
    """

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen"
            )
        if name in self._implementations:
            raise DuplicateHandlerError(name)
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._implementations

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Registry - background processing handlers
@runtime_checkable
class JobHandler(Protocol):
    """Protocol for job handlers that process background tasks."""

    async def handle(self, args: dict[str, Any]) -> None:
        """
        Handle one attempt of a background job.

        Args:
            args: The job's persisted payload

        Raising any exception fails the attempt; the exception text becomes
        the job's recorded error. Returning normally completes the job.
        """
        ...


class FunctionHandler:
    """Adapts a plain callable to the JobHandler protocol.

    Coroutine functions are awaited on the worker's loop; regular functions
    run in a thread so blocking code does not stall other slots.
    """

    def __init__(self, func: Callable[[dict[str, Any]], Any]):
        self.func = func
        self.is_async = inspect.iscoroutinefunction(func)

    async def handle(self, args: dict[str, Any]) -> None:
        if self.is_async:
            await self.func(args)
            return
        result = await asyncio.to_thread(self.func, args)
        # callable objects with an async __call__
        if inspect.isawaitable(result):
            await result

    def __repr__(self) -> str:
        return f"FunctionHandler({getattr(self.func, '__qualname__', self.func)!r})"


class JobRegistry(Registry[JobHandler]):
    """Registry mapping job names to their handlers."""

    def __init__(self):
        super().__init__("Job")

    def register(
        self, name: str, implementation: JobHandler | Callable[[dict[str, Any]], Any]
    ) -> None:
        if not name or not name.strip():
            raise ValueError("Job name cannot be empty")
        if isinstance(implementation, JobHandler):
            # a synchronous handle() would run on the loop and return None
            if not inspect.iscoroutinefunction(implementation.handle):
                implementation = FunctionHandler(implementation.handle)
        elif callable(implementation):
            implementation = FunctionHandler(implementation)
        else:
            raise TypeError(
                f"Handler for '{name}' must be callable or define handle(args)"
            )
        super().register(name, implementation)

    def get(self, name: str) -> JobHandler:
        if name not in self._implementations:
            raise UnknownJobError(name)
        return self._implementations[name]

    def job(self, name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of register(); returns the function unchanged."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register(name, func)
            return func

        return decorator
