"""
Commandeer faults (command errors and warnings) and rendering.

Scope
- FaultCode: stable numeric identifiers for every user-facing issue, grouped
  by domain (routing, flags, arguments, compile-time warnings).
- CommandError: the single error kind the dispatcher produces for user mistakes
  (unknown command, unknown flag, malformed or unexpected arguments). Errors
  raised by a command's own run/pre_run/init hooks are never turned into one.
- is_command_error(): kind check that survives wrapping by callers
  (raise ... from err, implicit context, exception groups).
- CommandWarning: compile-time notices (e.g. a persistent flag shadowed by a
  descendant's own flag).
- trigger(): single entry point to surface a fault with runtime options.

Rendering
- In non-shell mode errors are raised and warnings go through warnings.warn.
- In shell mode faults are printed with rich on stderr; errors then exit(1).
- Hosts may customize output from __main__: __prog__, __styles__, __codes__, __docs__.
"""
import copy
import inspect
import sys
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, UnsetType

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used by the dispatcher (stable identifiers).

    grouping
    - routing (1110x): UNKNOWN_COMMAND
    - flags (1111x): MALFORMED_ARGUMENTS, UNKNOWN_FLAG
    - arguments (1114x): UNEXPECTED_ARGUMENTS
    - warnings (12xxx): SHADOWED_FLAG

    normalize() lets the host remap codes to its own labels without breaking
    code stability.
    """
    # --- routing errors (11xxx) ---
    UNKNOWN_COMMAND             = 11101

    # --- flag errors (11xxx) ---
    MALFORMED_ARGUMENTS         = 11111
    UNKNOWN_FLAG                = 11112

    # --- argument errors (11xxx) ---
    UNEXPECTED_ARGUMENTS        = 11141

    # --- warnings (12xxx) ---
    SHADOWED_FLAG               = 12111

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__ to
        override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette, kind):
    main = __import__("__main__")
    options = fault.options
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    colorful = options.get("colorful", False)
    fancy = options.get("fancy", False)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment if colorful else Text(fragment.plain)
        return Text(str(fragment), styles[style] if colorful else "")

    commandeer = options.get("commandeer")
    prog = getattr(main, "__prog__", None) or (commandeer.root.name if commandeer else "")
    code = options.get("code")

    header = Text.assemble(
        "[ ",
        text(prog, "prog-name"),
        " — ",
        text(code.normalize() if code else "", "code"),
        " | ",
        text(str(options.get("title", kind)).title(), kind + "-title"),
        " ]"
    )
    body = [text(fault.message, kind + "-message")]
    if hint := options.get("hint"):
        body.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))
    if code and (doc := getdoc(code)):
        body.append(text(doc, "docs"))

    if fancy:
        return Panel(Group(*body), title=header, title_align="left")
    return Group(header, *body)


class CommandError(Exception):
    """
    user-facing error raised while routing or parsing a command line.

    options (all optional, merged in by trigger())
    - code: FaultCode of the issue.
    - commandeer: the node the arguments were resolved against.
    - suggestions: near-match command names offered to the user.
    - title / hint: short headline and a single actionable hint for rendering.
    - shell / fancy / colorful: runtime rendering switches.
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | UnsetType)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return f"command error: {self.message}"

    @property
    def code(self):
        return self.options.get("code")

    @property
    def commandeer(self):
        return self.options.get("commandeer")

    @property
    def suggestions(self):
        return tuple(self.options.get("suggestions", ()))

    def __rich__(self):
        return _render(self, {
            # header parts
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",

            # body
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
            "docs": "underline #00E5FF dim",
        }, "error")

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class UnknownCommandError(CommandError): ...
class UnknownFlagError(CommandError): ...
class MalformedArgumentsError(CommandError): ...
class UnexpectedArgumentsError(CommandError): ...


class CommandWarning(Warning):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | UnsetType)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return str(self.message)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "warning-title": "bold #FFC2E0",
            "warning-message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
            "docs": "underline #FFB400 dim",
        }, "warning")

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class ShadowedFlagWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods.
    - options are merged into a copy of the fault via copy.replace().
    - errors are raised (or rendered and exit in shell mode); warnings are
      emitted (or rendered in shell mode).
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation for a fault code, read from __main__.__docs__.

    returns None when the host does not document the code.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


def is_command_error(error, /):
    """
    report whether error, or anything it wraps, is a CommandError.

    the search follows explicit causes (raise ... from error), implicit
    contexts that were not suppressed, and the members of exception groups.
    """
    pending = [error]
    seen = set()
    while pending:
        error = pending.pop()
        if not isinstance(error, BaseException) or id(error) in seen:
            continue
        seen.add(id(error))
        if isinstance(error, CommandError):
            return True
        if isinstance(error, BaseExceptionGroup):
            pending.extend(error.exceptions)
        pending.append(error.__cause__)
        if not error.__suppress_context__:
            pending.append(error.__context__)
    return False


__all__ = (
    "CommandError",
    "UnknownCommandError",
    "UnknownFlagError",
    "MalformedArgumentsError",
    "UnexpectedArgumentsError",
    "CommandWarning",
    "ShadowedFlagWarning",
    "FaultCode",
    "trigger",
    "getdoc",
    "is_command_error",
)
