import sys

from rich.pretty import pprint

from commandeer import *

__prog__ = "hugo"


class Server(Commander):
    name = "server"

    def init(self, cd):
        cd.descr = "Start the development server."
        cd.aliases = ("serve", "s")
        cd.flags.add_argument("--port", "-p", type=int, default=1313)

    def run(self, ctx, cd, args):
        pprint({"command": cd.command_path, "port": self.port, "args": args, "ctx": ctx})


class Hugo(Commander):
    name = "hugo"

    def commands(self):
        return [Server()]

    def init(self, cd):
        cd.descr = "Build a static site."
        cd.persistent_flags.add_argument("--debug", "-d", action="store_true")

    def run(self, ctx, cd, args):
        pprint({"command": cd.command_path, "debug": self.debug, "args": args})


if __name__ == '__main__':
    pprint(invoke(Hugo(), sys.argv[1:], ctx={"argv": sys.argv}, shell=True))
