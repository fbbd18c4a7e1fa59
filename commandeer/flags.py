"""
Commandeer flag layer: the narrow contract with argparse.

What this module provides
- CommandParser: an argparse.ArgumentParser that never prints-and-exits on its
  own. Errors raise ParserError and help/exit requests raise ParserExit, both
  carrying the parser that produced them so the dispatcher can map it back
  to a node.
- FlagSet: per-node flag registry. Descriptors call add_argument() from their
  init hook with regular argparse options; the compiler later materializes the
  records on the node's parser under node-unique destinations, and the
  dispatcher binds the parsed values back onto the descriptor (the descriptor
  acts as the argparse namespace).
- suggest(): near-match lookup for a mistyped command name (difflib).

Persistent flags
- A FlagSet created with persistent=True is registered on its own node and
  copied onto every descendant parser with a suppressed default, so the value
  given anywhere on the command line lands on the declaring node.
"""
import argparse
import difflib
import inspect

from .utils import Unset, coalesce

# Namespace keys reserved by the compiler.
HANDLE = "__commandeer_handle__"
ARGS = "__commandeer_args__"

# argparse actions that consume a value and therefore accept a metavar.
_VALUED = {None, "store", "append", "extend"}

# Descriptor attributes the library reads; a flag bound over them would break the tree.
_RESERVED = frozenset({"name", "commands", "init", "pre_run", "run"})


class ParserError(Exception):
    """
    argparse reported a usage error (unknown choice, missing value, bad type...).

    parser is the CommandParser whose error() was called.
    """

    def __init__(self, message, /, *, parser):
        super().__init__(message)
        self.message = message
        self.parser = parser


class ParserExit(Exception):
    """
    argparse asked to exit (help or version was printed).
    """

    def __init__(self, status=0, message=None, /, *, parser):
        super().__init__(status, message)
        self.status = status
        self.message = message
        self.parser = parser


class CommandParser(argparse.ArgumentParser):
    """
    argparse parser compiled for one command node.

    Abbreviated long options are disabled: a flag is matched by its full name.
    """

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("allow_abbrev", False)
        super().__init__(*args, **kwargs)

    def error(self, message):
        raise ParserError(message, parser=self)

    def exit(self, status=0, message=None):
        raise ParserExit(status, message, parser=self)


def _reserved(cls, dest):
    # Plain class-level defaults (verbose = False) may be overwritten; hooks may not.
    if dest in _RESERVED or dest.startswith("__"):
        return True
    attribute = inspect.getattr_static(cls, dest, None)
    return callable(attribute) or isinstance(attribute, (property, staticmethod, classmethod))


def _destination(names, options):
    # Same rule argparse applies: first long option, otherwise the first one.
    if dest := options.get("dest"):
        return dest
    long = [name for name in names if name.startswith("--")]
    return (long or names)[0].lstrip("-").replace("-", "_")


class FlagSet:
    """
    Flags declared by one node, recorded until the compiler materializes them.

    Records keep the argparse keywords verbatim, so any argparse feature that
    applies to a single optional (type, choices, action, nargs, default,
    required, help, metavar) is available. Positionals are not flags: the
    arguments left after flag parsing are handed to run() instead.
    """

    def __init__(self, commandeer, /, *, persistent=False):
        self._commandeer = commandeer
        self._persistent = persistent
        self._records = []
        self._frozen = False

    @property
    def persistent(self):
        return self._persistent

    @property
    def names(self):
        """Every option string registered in this set."""
        return frozenset(name for names, _, _ in self._records for name in names)

    @property
    def destinations(self):
        return tuple(dest for _, _, dest in self._records)

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def __contains__(self, name):
        return name in self.names

    def add_argument(self, *names, **options):
        """
        Register a flag; returns the attribute name the value will be bound to.

        Raises
        - RuntimeError when the tree was already compiled.
        - ValueError for positional names or option strings already used by
          this node (local and persistent sets share one namespace).
        - ValueError for a destination that would replace the descriptor's
          name or one of its methods.
        """
        if self._frozen:
            raise RuntimeError(f"flags of {self._commandeer.name!r} cannot change after compile")
        if not names:
            raise ValueError("add_argument() requires at least one option string")
        for name in names:
            if not isinstance(name, str) or not name.startswith("-") or name.strip("-") == "":
                raise ValueError(f"flag name {name!r} must start with '-'")

        taken = self._commandeer.flags.names | self._commandeer.persistent_flags.names
        if clashes := sorted(taken.intersection(names)):
            raise ValueError(f"flag {clashes[0]!r} is already defined on {self._commandeer.name!r}")

        dest = _destination(names, options)
        if dest in self._commandeer.flags.destinations + self._commandeer.persistent_flags.destinations:
            raise ValueError(f"flag destination {dest!r} is already bound on {self._commandeer.name!r}")
        if _reserved(type(self._commandeer.command), dest):
            raise ValueError(f"flag destination {dest!r} would replace an attribute of {self._commandeer.name!r}")

        self._records.append((tuple(names), dict(options), dest))
        return dest

    def key(self, dest, /):
        """Namespace key of dest, unique across the whole tree."""
        return f"__commandeer_{self._commandeer.serial}__{dest}"

    def apply(self, parser, /, *, inherited=False, taken=frozenset()):
        """
        Add the recorded flags to parser; returns the option strings skipped.

        Records sharing an option string with taken are not added. inherited
        copies keep the declaring node's key but suppress the default and any
        requirement, so they only ever overwrite an explicit value.

        A required persistent flag may be given on any descendant's parser,
        so no parser enforces it; missing() does once parsing is over.
        """
        skipped = []
        for names, options, dest in self._records:
            if taken.intersection(names):
                skipped.append(names)
                continue
            options = options | {"dest": self.key(dest)}
            if options.get("action") in _VALUED and options.get("nargs") != 0:
                options.setdefault("metavar", dest.upper())
            if inherited or (self._persistent and options.get("required")):
                options["default"] = argparse.SUPPRESS
                options["required"] = False
            parser.add_argument(*names, **options)
        return skipped

    def missing(self, namespace, /):
        """
        Option strings of required persistent flags absent from namespace.
        """
        if not self._persistent:
            return []
        return [
            "/".join(names) for names, options, dest in self._records
            if options.get("required") and self.key(dest) not in namespace
        ]

    def bind(self, namespace, /, target=Unset):
        """
        Copy parsed values of this set from namespace onto target.

        target defaults to the node's descriptor; destinations missing from
        namespace (a suppressed default that was not given) are left alone.
        """
        target = coalesce(target, self._commandeer.command)
        for _, _, dest in self._records:
            if (key := self.key(dest)) in namespace:
                setattr(target, dest, namespace[key])

    def freeze(self):
        self._frozen = True


def suggest(name, candidates, /, *, cutoff=0.6, limit=5):
    """
    Return candidates that look like name, in candidate order.

    candidates maps every spelling (names and aliases) to the canonical name
    offered back to the user. A candidate matches when difflib finds it close
    enough or when it starts with what was typed.
    """
    spellings = list(candidates)
    close = set(difflib.get_close_matches(name, spellings, limit, cutoff))
    lowered = name.lower()

    suggestions = []
    for spelling, canonical in candidates.items():
        if spelling in close or (lowered and spelling.lower().startswith(lowered)):
            if canonical not in suggestions:
                suggestions.append(canonical)
    return suggestions[:limit]


__all__ = (
    "CommandParser",
    "ParserError",
    "ParserExit",
    "FlagSet",
    "suggest",
)
