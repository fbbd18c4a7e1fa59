"""
Commandeer execution layer: route an argument vector and run one command.

What this module provides
- new(command, **options): build and compile a command tree, ready to run.
- Exec.execute(args, ctx=...): parse args with the compiled argparse tree,
  find the node argparse routed to, run pre_run on every node from the root
  down to it, then run it. Returns that node.
- invoke(command, args, ...): one-shot convenience around new().execute().
- Execution / InitState: the per-call record of what ran and how far the
  initialization chain got.

Errors leaving execute()
- CommandError subclasses for anything argparse or the routing check rejected
  (unknown command, unknown flag, malformed or unexpected arguments). They
  carry the node the arguments were resolved against.
- Anything raised by pre_run or run, untouched (same object).

Quick start
    class Root(Commander):
        name = "app"

        def init(self, cd):
            cd.persistent_flags.add_argument("--verbose", action="store_true")

        def run(self, ctx, cd, args):
            print("verbose" if self.verbose else "quiet", args)

    new(Root()).execute(["--verbose"])

Concurrency
- Nothing here is locked. Descriptors usually keep per-run values on
  themselves, so one tree runs one execute() at a time.
"""
import argparse
import shlex
from enum import Enum
from typing import Protocol, runtime_checkable

from .commands import build, compile
from .faults import (
    FaultCode,
    MalformedArgumentsError,
    UnexpectedArgumentsError,
    UnknownCommandError,
    UnknownFlagError,
    trigger,
)
from .flags import ARGS, HANDLE, ParserError, ParserExit


class InitState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    FAILED = "failed"


class Execution:
    """
    One execute() call: the caller context, the resolved node, the positional
    arguments left for it, and the initialization state of each node on the
    path from the root.
    """

    __slots__ = ("ctx", "commandeer", "args", "states")

    def __init__(self, ctx, commandeer, args=(), /):
        self.ctx = ctx
        self.commandeer = commandeer
        self.args = list(args)
        self.states = dict.fromkeys(commandeer.path, InitState.UNINITIALIZED)

    def initialize(self):
        """
        Call pre_run(this, runner) root first; stop at the first failure.
        """
        for commandeer in self.commandeer.path:
            self.states[commandeer] = InitState.INITIALIZING
            try:
                commandeer.command.pre_run(commandeer, self.commandeer)
            except Exception:
                self.states[commandeer] = InitState.FAILED
                raise
            self.states[commandeer] = InitState.INITIALIZED

    def run(self):
        self.initialize()
        self.commandeer.command.run(self.ctx, self.commandeer, self.args)


@runtime_checkable
class Executer(Protocol):
    def execute(self, args=None, /, *, ctx=None): ...


def _did_you_mean(suggestions):
    if not suggestions:
        return ""
    return "\n\nDid you mean this?\n" + "".join(f"\t{suggestion}\n" for suggestion in suggestions)


def _skip(parser, args, index):
    # Index past the flag at args[index] and the values argparse would give it.
    arg = args[index]
    index += 1
    if "=" in arg or (action := parser._option_string_actions.get(arg)) is None:
        return index
    match action.nargs:
        case None:
            return index + 1
        case int(count):
            return index + count
        case argparse.OPTIONAL:
            limit = 1
        case _:
            limit = len(args)
    while limit and index < len(args) and not args[index].startswith("-"):
        index += 1
        limit -= 1
    return index


def _check_args(commandeer, args):
    # Walks the command names from the root, stepping over flags and their
    # values; returns the node and the argument that names none of its children.
    index = 0
    while index < len(args) and not commandeer.leaf:
        arg = args[index]
        if arg == "--":
            break
        if arg.startswith("-"):
            index = _skip(commandeer.parser, args, index)
            continue
        if (child := commandeer.lookup(arg)) is None:
            return commandeer, arg
        commandeer = child
        index += 1
    return None


class Exec:
    """
    Executes a compiled command tree.

    options
    - shell: render command errors with rich on stderr and exit(1) instead of
      raising them.
    - fancy / colorful: rendering switches for shell mode.
    """

    def __init__(self, commandeer, /, *, shell=False, fancy=False, colorful=False):
        self._commandeer = commandeer
        self._options = {"shell": shell, "fancy": fancy, "colorful": colorful}

    @property
    def commandeer(self):
        return self._commandeer

    @property
    def options(self):
        return dict(self._options)

    def find(self, parser, /):
        """
        Return the node whose compiled parser is parser, None if none is.
        """
        def visit(commandeer):
            if commandeer.parser is parser:
                return commandeer
            for child in commandeer.commandeers:
                if (found := visit(child)) is not None:
                    return found
            return None

        return visit(self._commandeer)

    def execute(self, args=None, /, *, ctx=None):
        """
        Parse args, run the selected command and return its node.

        args is the argument vector without the program name; None means no
        arguments (sys.argv is never read). ctx is handed unchanged to run().
        A help request prints argparse help and returns the node without
        running anything.
        """
        args = [] if args is None else list(args)

        try:
            namespace, extras = self._commandeer.parser.parse_known_args(args)
        except ParserExit as request:
            commandeer = self.find(request.parser)
            if request.status:
                self._reject(commandeer, args, MalformedArgumentsError(
                    (request.message or f"exit status {request.status}").strip()
                ), code=FaultCode.MALFORMED_ARGUMENTS, title="malformed arguments")
            return commandeer
        except ParserError as error:
            self._reject(self.find(error.parser), args, MalformedArgumentsError(
                error.message
            ), code=FaultCode.MALFORMED_ARGUMENTS, title="malformed arguments")

        namespace = vars(namespace)
        commandeer = self.find(namespace[HANDLE])

        if flags := [extra for extra in extras if extra.startswith("-")]:
            self._reject(commandeer, args, UnknownFlagError(
                f"unknown flag: {flags[0]}"
            ), code=FaultCode.UNKNOWN_FLAG, title="unknown flag")
        elif extras and not commandeer.leaf:
            self._reject(commandeer, args, UnexpectedArgumentsError(
                f"unexpected arguments: {' '.join(extras)}"
            ), code=FaultCode.UNEXPECTED_ARGUMENTS, title="unexpected arguments")

        for node in commandeer.path:
            if missing := node.persistent_flags.missing(namespace):
                self._reject(commandeer, args, MalformedArgumentsError(
                    f"the following arguments are required: {', '.join(missing)}"
                ), code=FaultCode.MALFORMED_ARGUMENTS, title="malformed arguments")

        for node in commandeer.path:
            node.flags.bind(namespace)
            node.persistent_flags.bind(namespace)

        # argparse stops filling a leaf's arguments at the first flag; the rest come back as extras.
        Execution(ctx, commandeer, [*namespace.get(ARGS, ()), *extras]).run()
        return commandeer

    def _reject(self, commandeer, args, fault, /, **options):
        # argparse checks sub-command names one parser at a time; the whole
        # path is checked here so the error names the node it happened under.
        if unknown := _check_args(self._commandeer, args):
            node, arg = unknown
            suggestions = () if node.disable_suggestions else tuple(node.suggestions_for(arg))
            trigger(
                UnknownCommandError(f'unknown command "{arg}" for "{node.command_path}"{_did_you_mean(suggestions)}'),
                code=FaultCode.UNKNOWN_COMMAND,
                title="unknown command",
                hint=f"run '{node.command_path} --help' for usage",
                commandeer=node,
                suggestions=suggestions,
                **self._options
            )
        trigger(
            fault,
            hint=f"run '{commandeer.command_path} --help' for usage",
            commandeer=commandeer,
            **options,
            **self._options
        )


def new(command, /, **options):
    """
    Build and compile the tree of command; returns an Exec.

    Exceptions raised by an init hook propagate unchanged and no tree is
    returned. options are the Exec options (shell, fancy, colorful).
    """
    commandeer = build(command)
    compile(commandeer, **options)
    return Exec(commandeer, **options)


def invoke(command, args=None, /, ctx=None, **options):
    """
    Execute command (a Commander or an Exec) once.

    args may be a sequence or a shell-like string split with shlex.
    """
    if isinstance(args, str):
        args = shlex.split(args)
    if not isinstance(command, Exec):
        command = new(command, **options)
    return command.execute(args, ctx=ctx)


__all__ = (
    "Exec",
    "Executer",
    "Execution",
    "InitState",
    "new",
    "invoke",
)
