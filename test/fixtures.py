"""
Command descriptors shared by the behavioral suites.

RootCommand / Level1Command / Level2Command model a three level tree:

    root
    ├── foo
    └── bar
        └── baz

Each descriptor records what the library did to it (init/pre_run/run calls,
bound flag values, the context it ran with) so tests can assert on it.
"""
from commandeer import Commander


class RootCommand(Commander):
    def __init__(self, name="root", commands=(), *, fail_init=False, fail_run=False):
        self.name = name
        self.children = list(commands)
        self.fail_init = fail_init
        self.fail_run = fail_run

        self.is_init = False
        self.ctx = None
        self.init_this = None
        self.init_runner = None

        # Flags
        self.persistent_flag_name = ""
        self.local_flag_name = ""

        # Values derived in pre_run
        self.persistent_flag_name_c = ""
        self.local_flag_name_c = ""

    def commands(self):
        return self.children

    def init(self, cd):
        if self.fail_init:
            raise RuntimeError("fail_init")
        cd.flags.add_argument("--localFlagName", dest="local_flag_name", default="", help="set localFlagName")
        cd.persistent_flags.add_argument(
            "--persistentFlagName", dest="persistent_flag_name", default="", help="set persistentFlagName"
        )

    def pre_run(self, this, runner):
        self.is_init = True
        self.persistent_flag_name_c = self.persistent_flag_name + "_rootCommand_compiled"
        self.local_flag_name_c = self.local_flag_name + "_rootCommand_compiled"
        self.init_this = this
        self.init_runner = runner

    def run(self, ctx, cd, args):
        if self.fail_run:
            raise RuntimeError("failRun")
        self.ctx = ctx


class Level1Command(Commander):
    def __init__(
            self,
            name,
            commands=(),
            *,
            aliases=(),
            fail_init=False,
            fail_pre_run=False,
            disable_suggestions=False,
    ):
        self.name = name
        self.children = list(commands)
        self.aliases = tuple(aliases)
        self.fail_init = fail_init
        self.fail_pre_run = fail_pre_run
        self.disable_suggestions = disable_suggestions

        self.is_init = False
        self.ctx = None
        self.args = None
        self.root_cmd = None
        self.local_flag_name = ""
        self.local_flag_name_c = ""

    def commands(self):
        return self.children

    def init(self, cd):
        if self.fail_init:
            raise RuntimeError("fail_init")
        cd.aliases = self.aliases
        cd.disable_suggestions = self.disable_suggestions
        cd.flags.add_argument(
            "--localFlagName", dest="local_flag_name", default="", help="set localFlagName for Level1Command"
        )

    def pre_run(self, this, runner):
        if self.fail_pre_run:
            raise RuntimeError("fail_pre_run")
        self.is_init = True
        self.local_flag_name_c = self.local_flag_name + "_lvl1Command_compiled"
        self.root_cmd = this.root.command

    def run(self, ctx, cd, args):
        self.ctx = ctx
        self.args = args


class Level2Command(Commander):
    def __init__(self, name):
        self.name = name

        self.is_init = False
        self.ctx = None
        self.args = None
        self.root_cmd = None
        self.parent_cmd = None
        self.local_flag_name = ""

    def init(self, cd):
        cd.flags.add_argument(
            "--localFlagName", dest="local_flag_name", default="", help="set localFlagName for Level2Command"
        )

    def pre_run(self, this, runner):
        self.is_init = True
        self.root_cmd = this.root.command
        self.parent_cmd = this.parent.command

    def run(self, ctx, cd, args):
        self.ctx = ctx
        self.args = args


def sample():
    return RootCommand("root", [
        Level1Command("foo"),
        Level1Command("bar", [
            Level2Command("baz"),
        ]),
    ])


class Recorder(Commander):
    """
    Appends every hook call to a shared event list.

    events entries: ("init", path) / ("pre_run", this path, runner path) /
    ("run", path, args).
    """

    def __init__(self, name, *commands, events, fail_init=False, fail_pre_run=False, error=None):
        self.name = name
        self.children = list(commands)
        self.events = events
        self.fail_init = fail_init
        self.fail_pre_run = fail_pre_run
        self.error = error

    def commands(self):
        return self.children

    def init(self, cd):
        self.events.append(("init", cd.command_path))
        if self.fail_init:
            raise ValueError(f"init {self.name}")

    def pre_run(self, this, runner):
        self.events.append(("pre_run", this.command_path, runner.command_path))
        if self.fail_pre_run:
            raise LookupError(f"pre_run {self.name}")

    def run(self, ctx, cd, args):
        self.events.append(("run", cd.command_path, tuple(args)))
        if self.error is not None:
            raise self.error
