"""
Commandeer command layer: describe, build, and compile command trees.

What this module provides
- Commander: the contract a user implements for one command (name, children,
  init/pre_run/run hooks).
- Commandeer: the node the library creates for every Commander. It knows its
  root, parent and children, carries the metadata and flags registered during
  init, and holds the compiled argparse handle.
- build(command): walk a Commander and its declared children depth-first
  into a Commandeer tree.
- compile(commandeer): run every init hook root-first and materialize one
  CommandParser per node, linked through argparse sub-parsers.

Lifecycle
    descriptors → build → node tree → compile → Exec.execute (see executor)

Recovering typed state
- Hooks receive nodes, not descriptors. A descriptor that needs its parent or
  root reaches them explicitly, usually in pre_run:

      def pre_run(self, this, runner):
          self.root_command = this.root.command
          self.parent_command = this.parent.command
"""
import argparse
import itertools
from abc import ABC, abstractmethod

from .faults import FaultCode, ShadowedFlagWarning, trigger
from .flags import ARGS, HANDLE, CommandParser, FlagSet, suggest
from .utils import Unset, coalesce, mirror, rename


class Commander(ABC):
    """
    One command of a command tree, supplied by the application.

    Contract
    - name: str attribute or property; non-empty, no whitespace, no leading '-'.
    - commands(): sub-commands in the order they should be listed and matched.
    - init(cd): called once while compiling; register flags on cd.flags /
      cd.persistent_flags and metadata such as cd.descr or cd.aliases.
    - pre_run(this, runner): called on every node from the root down to the
      node being run, before it runs; runner is that node.
    - run(ctx, cd, args): the command itself; ctx is whatever the caller passed
      to execute(), args are the positional arguments left after parsing.
    """

    def commands(self):
        return ()

    def init(self, cd):
        pass

    def pre_run(self, this, runner):
        pass

    @abstractmethod
    def run(self, ctx, cd, args):
        ...


class SimpleCommand(Commander):
    """
    Commander backed by a plain callable, for commands without flags.

    The callable is called as callback(ctx, args); its name is the command
    name unless one is given.
    """

    def __init__(self, callback, /, name=Unset, commands=()):
        self._callback = callback
        self._commands = tuple(commands)
        self.name = coalesce(name, getattr(callback, "__name__", None))

    def commands(self):
        return self._commands

    def run(self, ctx, cd, args):
        return self._callback(ctx, args)


def command(source=Unset, /, **options):
    """
    Create a SimpleCommand or return a decorator building one.

    Invocation modes
    - Direct: cmd = command(func, name="version")
    - Decorator:
        @command(name="version")
        def version(ctx, args): ...

    options are forwarded to SimpleCommand (name, commands).
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return SimpleCommand(source, **options)

    return wrapper(source) if source is not Unset else wrapper


class Commandeer:
    """
    Node of a compiled command tree, one per Commander.

    Structure (read-only)
    - command: the Commander this node was built from.
    - root / parent / commandeers: tree links; parent is None for the root.
    - parser: the CommandParser attached by compile(), None before that.
    - serial: depth-first position, unique within the tree.

    Metadata (set from Commander.init)
    - usage, descr, epilog: help text handed to argparse.
    - aliases: alternative names that route to this node.
    - suggest_for: words for which this node is suggested even when they do
      not look alike.
    - disable_suggestions: drop the “Did you mean” block when an unknown
      sub-command is given to this node.
    - cutoff: difflib similarity ratio used for suggestions.
    """

    command = mirror("command")
    root = mirror("root")
    parent = mirror("parent")
    commandeers = mirror("commandeers")
    parser = mirror("parser")
    serial = mirror("serial")
    flags = mirror("flags")
    persistent_flags = mirror("persistent_flags")

    def __init__(self, command, /, parent=None, root=Unset, serial=0):
        self._command = command
        self._parent = parent
        self._root = coalesce(root, self)
        self._serial = serial
        self._commandeers = []
        self._parser = None
        self._flags = FlagSet(self)
        self._persistent_flags = FlagSet(self, persistent=True)

        self.usage = None
        self.descr = None
        self.epilog = None
        self.aliases = ()
        self.suggest_for = ()
        self.disable_suggestions = False
        self.cutoff = 0.6

    @property
    def name(self):
        return self._command.name

    @property
    def path(self):
        """
        Nodes from the root down to this one, both included.
        """
        path = [commandeer := self]
        while commandeer.parent:
            path.append(commandeer := commandeer.parent)
        return tuple(reversed(path))

    @property
    def command_path(self):
        """
        Space separated names from the root, e.g. 'hugo server'.
        """
        return " ".join(commandeer.name for commandeer in self.path)

    @property
    def leaf(self):
        return not self._commandeers

    def lookup(self, name, /):
        """
        Return the child called name (or aliased so), None if there is none.
        """
        for commandeer in self._commandeers:
            if name == commandeer.name or name in commandeer.aliases:
                return commandeer
        return None

    def suggestions_for(self, name, /):
        """
        Child names the user may have meant when typing name.

        Similarity is delegated to difflib; children listing name in their
        suggest_for are always included. Results keep declaration order.
        """
        candidates = {}
        for commandeer in self._commandeers:
            candidates.setdefault(commandeer.name, commandeer.name)
            for alias in commandeer.aliases:
                candidates.setdefault(alias, commandeer.name)
        similar = set(suggest(name, candidates, cutoff=self.cutoff))
        return [
            commandeer.name for commandeer in self._commandeers
            if commandeer.name in similar or name in commandeer.suggest_for
        ]

    def __repr__(self):
        return f"commandeer(name={self.name!r}, path={self.command_path!r}, commandeers={len(self._commandeers)})"


def _validate_name(command):
    name = getattr(command, "name", Unset)
    if not isinstance(name, str):
        raise TypeError(f"command name must be a string, not {type(name).__name__}")
    if not name or name.startswith("-") or any(char.isspace() for char in name):
        raise ValueError(f"command name {name!r} must be a non-empty word not starting with '-'")
    return name


def build(command, /):
    """
    Build the node tree of command and its declared children.

    Traversal is depth-first and keeps declaration order. Every node shares
    the same root and points at the node it was declared under.

    Raises
    - TypeError when a command is not a Commander or its name is not a string.
    - ValueError for invalid names, duplicate sibling names, or a Commander
      instance reachable from two places in the tree.
    """
    serials = itertools.count()
    seen = set()

    def visit(command, parent):
        if not isinstance(command, Commander):
            raise TypeError(f"commands must be commanders, not {type(command).__name__}")
        name = _validate_name(command)
        if id(command) in seen:
            raise ValueError(f"command {name!r} appears more than once in the tree")
        seen.add(id(command))

        commandeer = Commandeer(command, parent, parent.root if parent else Unset, next(serials))
        names = set()
        for child in command.commands():
            node = visit(child, commandeer)
            if node.name in names:
                raise ValueError(f"command name {node.name!r} is already in use under {commandeer.command_path!r}")
            names.add(node.name)
            commandeer._commandeers.append(node)
        return commandeer

    return visit(command, None)


def _usage(commandeer):
    if commandeer.usage:
        return commandeer.usage
    if commandeer.leaf:
        return "%(prog)s [flags] [args]"
    return "%(prog)s [command] [flags]"


def _check_aliases(commandeer):
    siblings = [sibling for sibling in commandeer.parent.commandeers if sibling is not commandeer]
    taken = {sibling.name for sibling in siblings}
    # Aliases of later siblings are only known once their own init has run.
    for sibling in siblings:
        if sibling.parser is not None:
            taken.update(sibling.aliases)
    for alias in commandeer.aliases:
        if alias == commandeer.name or alias in taken:
            raise ValueError(f"alias {alias!r} of {commandeer.command_path!r} is already in use")
        taken.add(alias)


def _inherit(commandeer, parser, /, **options):
    own = commandeer.flags.names | commandeer.persistent_flags.names
    taken = set(own)
    # Nearest ancestor first, so a redefinition lower in the tree wins.
    for ancestor in reversed(commandeer.path[:-1]):
        flags = ancestor.persistent_flags
        for names in flags.apply(parser, inherited=True, taken=frozenset(taken)):
            if shadowed := sorted(own.intersection(names)):
                trigger(
                    ShadowedFlagWarning(
                        f"persistent flag {shadowed[0]!r} of {ancestor.command_path!r} "
                        f"is shadowed by {commandeer.command_path!r}"
                    ),
                    code=FaultCode.SHADOWED_FLAG,
                    title="shadowed flag",
                    hint=f"{commandeer.command_path!r} reads its own {shadowed[0]!r} instead",
                    commandeer=commandeer,
                    **options
                )
        taken |= flags.names


def compile(commandeer, /, subparsers=None, **options):
    """
    Compile commandeer and its subtree into argparse parsers.

    For each node, root first: call command.init(node), create its parser
    (a sub-parser of the parent's), register local, persistent and inherited
    persistent flags, then recurse into the children in declaration order.
    The first exception raised by an init hook aborts the whole compilation
    and propagates unchanged.

    options are runtime switches (shell, fancy, colorful) for compile-time
    warnings.
    """
    commandeer.command.init(commandeer)

    settings = {
        "usage": _usage(commandeer),
        "description": commandeer.descr,
        "epilog": commandeer.epilog,
    }
    if subparsers is None:
        parser = CommandParser(prog=commandeer.name, **settings)
    else:
        _check_aliases(commandeer)
        parser = subparsers.add_parser(
            commandeer.name,
            prog=commandeer.command_path,
            aliases=tuple(commandeer.aliases),
            help=commandeer.descr,
            **settings
        )
    commandeer._parser = parser

    commandeer.flags.apply(parser)
    commandeer.persistent_flags.apply(parser)
    _inherit(commandeer, parser, **options)
    commandeer.flags.freeze()
    commandeer.persistent_flags.freeze()

    # The deepest matched parser overwrites this, which is how routing is reported.
    parser.set_defaults(**{HANDLE: parser})

    if commandeer.leaf:
        parser.add_argument(ARGS, nargs="*", help=argparse.SUPPRESS)
        return commandeer

    subparsers = parser.add_subparsers(
        title="commands",
        metavar="command",
        prog=commandeer.command_path,
        parser_class=CommandParser,
    )
    for child in commandeer.commandeers:
        compile(child, subparsers, **options)
    return commandeer


# build() and compile() are reached through executor.new().
__all__ = (
    "Commander",
    "Commandeer",
    "SimpleCommand",
    "command",
)
