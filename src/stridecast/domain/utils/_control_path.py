"""
Key-based function dispatch (a.k.a. "control-path" tables) via decorators.

This module provides a small mechanism for routing a call to one of several
registered implementations based on a hashable dispatch state, such as a
copy strategy or a (source dtype, destination dtype) pair.

Core idea
---------
- You create a table with `create_path_builder(name)`.
- You register implementations with ``@table.register(state)``, or by calling
  ``table.register(state)(fn)`` from a loop when the implementations are
  generated rather than written by hand.
- At runtime, ``table.resolve(state)`` returns the registered implementation
  for that state.

Intended use-cases
------------------
- Replacing large if/elif chains over enum values with isolated functions.
- Building a dispatch matrix once at import time and looking entries up on
  the hot path with a single dictionary access.

Important notes
---------------
- Registered implementations are stored in a closure-local mapping owned by
  `create_path_builder()`. Different tables do not share mappings.
- Registering the same state twice replaces the earlier implementation.
- A state that is a tuple is a multi-level key; ``resolve(a, b)`` and
  ``resolve((a, b))`` are equivalent.
"""

from typing import (
    Callable,
    Dict,
    Hashable,
    NamedTuple,
    Optional,
    Tuple,
    Type,
    Union,
    Any,
)
from collections import namedtuple

from typing_extensions import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")


class ControlPathTable(NamedTuple):
    """
    Handle returned by `create_path_builder`.

    Attributes
    ----------
    name : str
        Table name, used in error messages.
    register : Callable[..., Callable[[Callable], Callable]]
        ``register(*state)`` returns a decorator that stores a function for
        ``state``.
    resolve : Callable[..., Callable]
        ``resolve(*state)`` returns the function registered for ``state``.
    states : Callable[[], Tuple[Hashable, ...]]
        Returns every registered state, in registration order.
    """

    name: str
    register: Callable[..., Callable[[Callable], Callable]]
    resolve: Callable[..., Callable]
    states: Callable[[], Tuple[Hashable, ...]]


def create_path_builder(
    name: str,
    trap_exception: Optional[
        Union[Type[BaseException], Callable[[str, Hashable], None]]
    ] = None,
) -> ControlPathTable:
    """
    Create a keyed dispatch table.

    Usage::

        strategies = create_path_builder("copy strategy")

        @strategies.register(CopyType.Scalar)
        def copy_scalar(src, dst): ...

        strategies.resolve(CopyType.Scalar)(src, dst)

    Parameters
    ----------
    name : str
        Human-readable name of the table.
    trap_exception : Optional[Union[Type[BaseException], Callable[[str, Hashable], None]]]
        Controls what happens when `resolve` misses:

        - If `None`, `NotImplementedError` is raised.
        - If an exception class, it is raised by calling ``trap_exception()``.
        - If another callable, it is invoked as ``trap_exception(name, state)``
          (e.g. to log the miss) before `NotImplementedError` is raised.

    Returns
    -------
    ControlPathTable
        The register / resolve / states handle.
    """

    PathKey = namedtuple(
        "PathKey",
        [
            "TableName",
            "StateVal",
        ],
    )
    """Tuple-like key uniquely identifying a control path within this table."""

    paths_map: Dict[PathKey, Callable] = {}
    """Mapping from (table, state) keys to registered implementations."""

    def _normalize(state: Tuple[Hashable, ...]) -> Hashable:
        return state[0] if len(state) == 1 else tuple(state)

    def register(*state: Hashable) -> Callable[[Callable[P, R]], Callable[P, R]]:
        """
        Build a decorator that registers an implementation for ``state``.

        Raises
        ------
        TypeError
            If ``state`` is not hashable.
        """
        key_state = _normalize(state)
        try:
            hash(key_state)
        except TypeError:
            raise TypeError(
                f"Control path state for {name!r} must be hashable. Got {key_state!r}"
            )

        key = PathKey(name, key_state)

        def decorator(sub_method: Callable[P, R]) -> Callable[P, R]:
            paths_map[key] = sub_method
            return sub_method

        return decorator

    def resolve(*state: Hashable) -> Callable:
        """Return the implementation registered for ``state``."""
        key_state = _normalize(state)
        if sm := paths_map.get(PathKey(name, key_state)):
            return sm
        if not trap_exception:
            raise NotImplementedError(
                "Missing control path (state={}) for {}".format(
                    repr(key_state), repr(name)
                )
            )
        if isinstance(trap_exception, type) and issubclass(
            trap_exception, BaseException
        ):
            raise trap_exception()
        trap_exception(name, key_state)
        raise NotImplementedError(
            "Missing control path (state={}) for {}".format(repr(key_state), repr(name))
        )

    def states() -> Tuple[Any, ...]:
        return tuple(k.StateVal for k in paths_map)

    return ControlPathTable(name, register, resolve, states)
