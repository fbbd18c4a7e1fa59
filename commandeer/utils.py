"""
Commandeer utilities (small helpers shared by the tree, flag and fault layers)

Overview
- UnsetType / Unset
  • Singleton sentinel for “value not provided”, distinct from None.
  • Falsey, printable as "Unset", and non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a default while keeping legitimate falsey values (None, 0, "").

- rename(callable, name) / @rename("name")
  • Give generated callables readable __name__/__qualname__ for tracebacks.

- mirror("attr")
  • Read-only property exposing the private backing field self._attr; containers
    are handed out as fresh copies so the tree cannot be mutated through them.

Names not listed in __all__ are internal.
"""
import builtins
import functools
from collections.abc import Sequence, Mapping, Set
from typing import final


@final
class UnsetType:
    """
    Sentinel type for a value that was not provided.

    A single instance, Unset, is used where None is a meaningful value (for
    instance a node's parent, which is None for the root) and the API still
    has to tell “not given” apart from “given as None”.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Return object unless it is the Unset sentinel, in which case return default.

    Falsey values are preserved as-is:
    - coalesce("root", "x") -> "root"
    - coalesce(Unset, "x")  -> "x"
    - coalesce(None, "x")   -> None
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set __name__/__qualname__ on a callable, or return a decorator doing so.

    - rename(callable, name) -> callable
    - rename(name) -> decorator
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _immortalize(object):
    # Fresh containers on every read; nodes and parsers are returned by reference.
    if isinstance(object, Sequence) and not isinstance(object, str):
        return tuple(map(_immortalize, object))
    elif isinstance(object, Mapping):
        return dict(zip(object.keys(), map(_immortalize, object.values())))
    elif isinstance(object, Set):
        return frozenset(map(_immortalize, object))
    else:
        return coalesce(object)


def mirror(name, /):
    """
    Define a read-only property that mirrors the private attribute "_{name}".

    Sequences come back as tuples and sets as frozensets, so a caller holding
    node.commandeers cannot append to the tree behind the compiler's back.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _immortalize(getattr(self, "_" + name))

    return property(getter)


Unset = UnsetType()


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
