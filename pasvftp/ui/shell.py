"""
Interactive command shell.

Prompts for the connection details, logs in, then reads one command per
line and dispatches it to the FTP session or to the local filesystem::

    $ pasvftp
    Host: ftp.example.com
    Port [21]:
    Username: anonymous
    Password:
    220 Welcome
    > ls
    > get readme.txt
    > quit
"""

import getpass
import io
import logging
import os
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Optional, Tuple

try:
    import readline  # noqa: F401  enables line editing in input()
except ImportError:
    readline = None

from pasvftp.config import ClientConfig
from pasvftp.core import FTPError, FTPSession, TransferMode
from pasvftp.ui.levenstein import get_suggestion

logger = logging.getLogger(__name__)

PROMPT = "> "

ALIASES = {
    "dir": "list",
    "ls": "list",
    "chdir": "cd",
    "rm": "delete",
    "mv": "rename",
    "ldir": "lls",
    "llist": "lls",
    "lchdir": "lcd",
    "bye": "quit",
    "exit": "quit",
}

REQUIRED_ARGS = {
    "cd": 1,
    "mkdir": 1,
    "rmdir": 1,
    "touch": 1,
    "cat": 1,
    "delete": 1,
    "rename": 2,
    "get": 1,
    "send": 1,
    "lcd": 1,
}

HELP_TEXT = """\
Remote:  ls|dir|list [path]   nlst [path]   cd|chdir <dir>   cdup   pwd
         mkdir <dir>   rmdir <dir>   touch <file>   cat <file>
         rm|delete <file>   mv|rename <from> <to>
         get <remote> [local]   send <local> [remote]
         ascii   binary   rhelp [topic]   status [path]   system   noop
Local:   lpwd   lls|ldir|llist [args]   lcd|lchdir <dir>
Shell:   history   help   quit|bye|exit"""


class LineInput:
    """
    Source of trimmed input lines.

    ``None`` means the user ended input (EOF or Ctrl-C); callers treat it as
    "abort".
    """

    def __init__(self, reader=input, password_reader=getpass.getpass):
        self.reader = reader
        self.password_reader = password_reader

    def read_line(self, prompt: str = PROMPT) -> Optional[str]:
        try:
            line = self.reader(prompt)
        except (EOFError, KeyboardInterrupt):
            return None
        return line.strip()

    def required(self, prompt: str) -> Optional[str]:
        """Prompt until a non-empty line is given."""
        while True:
            line = self.read_line(prompt)
            if line is None or line:
                return line

    def with_default(self, prompt: str, default: str) -> Optional[str]:
        line = self.read_line(f"{prompt} [{default}]: ")
        if line is None:
            return None
        return line or default

    def password(self, prompt: str = "Password: ") -> Optional[str]:
        try:
            return self.password_reader(prompt)
        except (EOFError, KeyboardInterrupt):
            return None


class LocalFileStore:
    def read_file(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_file(self, path: str, data: bytes):
        Path(path).write_bytes(data)


class AppContext:
    """Everything a command needs: the session, the local directory and the I/O ends."""

    def __init__(self, session: FTPSession = None, local_cwd: str = None, input: LineInput = None,
                 output=None, files: LocalFileStore = None):
        self.session = session
        self.local_cwd = os.path.abspath(local_cwd or os.getcwd())
        self.input = input or LineInput()
        self.output = output or sys.stdout
        self.files = files or LocalFileStore()

    def print(self, *args, **kwargs):
        print(*args, file=self.output, **kwargs)

    def resolve_local(self, path: str) -> str:
        return os.path.normpath(os.path.join(self.local_cwd, os.path.expanduser(path)))


class CommandDispatcher:
    """Maps shell command lines to session operations and local actions."""

    def __init__(self, ctx: AppContext):
        self.ctx = ctx

    @property
    def commands(self):
        names = [name[3:] for name in dir(self) if name.startswith("do_")]
        return sorted(names + list(ALIASES) + ["quit"])

    def execute(self, line: str) -> bool:
        """Run one command line. Returns True when the shell should exit."""
        try:
            args = shlex.split(line)
        except ValueError as e:
            self.ctx.print(f"Invalid command line: {e}")
            return False
        if not args:
            return False

        command, args = args[0].lower(), args[1:]
        name = ALIASES.get(command, command)
        if name == "quit":
            return True

        handler = getattr(self, f"do_{name}", None)
        if handler is None:
            suggestion = get_suggestion(command, self.commands)
            hint = f"  Did you mean '{suggestion}'?" if suggestion else ""
            self.ctx.print(f"Unknown command: {command}.{hint}")
            return False

        required = REQUIRED_ARGS.get(name, 0)
        if len(args) < required:
            self.ctx.print(f"{command} requires {required} argument(s).  Arguments given: {len(args)}")
            return False

        logger.debug("Dispatching %s %s", name, args)
        try:
            handler(args)
        except FTPError as e:
            self.ctx.print(e)
        except subprocess.CalledProcessError as e:
            self.ctx.print((e.stderr or str(e)).rstrip("\n"))
        except OSError as e:
            self.ctx.print(e)

        session = self.ctx.session
        if session is not None and session.closed:
            self.ctx.print("Connection closed.")
            return True
        return False

    def capture(self, line: str) -> Tuple[str, bool]:
        """Run ``line`` and return what it printed plus the exit flag."""
        output, self.ctx.output = self.ctx.output, io.StringIO()
        try:
            done = self.execute(line)
            return self.ctx.output.getvalue(), done
        finally:
            self.ctx.output = output

    def _show(self, text: str):
        self.ctx.print(text.rstrip("\n"))

    # ---------------- remote ----------------
    def do_list(self, args):
        self._show(self.ctx.session.list(args[0] if args else None))

    def do_nlst(self, args):
        self._show(self.ctx.session.name_list(args[0] if args else None))

    def do_cd(self, args):
        self.ctx.print(self.ctx.session.change_directory(args[0]))

    def do_cdup(self, args):
        self.ctx.print(self.ctx.session.parent_directory())

    def do_pwd(self, args):
        self.ctx.print(self.ctx.session.get_current_directory())

    def do_mkdir(self, args):
        self.ctx.print(self.ctx.session.make_directory(args[0]))

    def do_rmdir(self, args):
        self.ctx.print(self.ctx.session.remove_directory(args[0]))

    def do_touch(self, args):
        sent = self.ctx.session.store(args[0], b"")
        self.ctx.print(f"Bytes sent: {sent}")

    def do_cat(self, args):
        self._show(self.ctx.session.retrieve(args[0]).decode("utf-8", errors="replace"))

    def do_delete(self, args):
        self.ctx.print(self.ctx.session.delete(args[0]))

    def do_rename(self, args):
        self.ctx.print(self.ctx.session.rename(args[0], args[1]))

    def do_get(self, args):
        remote = args[0]
        local = self.ctx.resolve_local(args[1] if len(args) > 1 else os.path.basename(remote))
        contents = self.ctx.session.retrieve(remote)
        self.ctx.files.write_file(local, contents)
        self.ctx.print(f"{len(contents)} bytes written to {local}")

    def do_send(self, args):
        local = self.ctx.resolve_local(args[0])
        remote = args[1] if len(args) > 1 else os.path.basename(local)
        contents = self.ctx.files.read_file(local)
        sent = self.ctx.session.store(remote, contents)
        self.ctx.print(f"Bytes sent: {sent}")

    def do_ascii(self, args):
        self.ctx.print(self.ctx.session.set_mode(TransferMode.ASCII))

    def do_binary(self, args):
        self.ctx.print(self.ctx.session.set_mode(TransferMode.BINARY))

    def do_rhelp(self, args):
        self._show(self.ctx.session.help(" ".join(args) or None))

    def do_status(self, args):
        self._show(self.ctx.session.stat(args[0] if args else None))

    def do_system(self, args):
        self.ctx.print(self.ctx.session.system())

    def do_noop(self, args):
        self.ctx.print(self.ctx.session.noop())

    # ---------------- local ----------------
    def do_lpwd(self, args):
        self.ctx.print(self.ctx.local_cwd)

    def do_lls(self, args):
        result = subprocess.run(["ls", *args], cwd=self.ctx.local_cwd, capture_output=True, text=True, check=True)
        self._show(result.stdout)

    def do_lcd(self, args):
        path = self.ctx.resolve_local(args[0])
        if not os.path.isdir(path):
            self.ctx.print(f"{args[0]}: No such directory")
            return
        self.ctx.local_cwd = path
        self.ctx.print(path)

    # ---------------- shell ----------------
    def do_history(self, args):
        for entry in self.ctx.session.get_history()[-20:]:
            flag = "!" if entry["error"] else " "
            self.ctx.print(f"{flag} {entry['time']:%H:%M:%S} {entry['command']} -> {entry['reply'].code}")

    def do_help(self, args):
        self.ctx.print(HELP_TEXT)


def open_session(ctx: AppContext, config: ClientConfig) -> Optional[FTPSession]:
    """Ask for the connection details, connect and log in."""
    inp = ctx.input
    host = inp.with_default("Host", config.host) if config.host else inp.required("Host: ")
    if not host:
        return None

    port = inp.with_default("Port", str(config.port))
    if not port:
        return None
    try:
        port = int(port)
    except ValueError:
        ctx.print(f"Invalid port: {port}")
        return None

    username = inp.with_default("Username", config.user) if config.user else inp.required("Username: ")
    if not username:
        return None

    password = inp.password("Password: ")
    if password is None:
        return None

    session = FTPSession(host, port, config.timeout)
    try:
        ctx.print(session.connect())
        ctx.print(session.authenticate(username, password))
    except FTPError as e:
        logger.error("Connection to %s:%s failed: %s", host, port, e)
        ctx.print("Error on connection: ", e)
        session.disconnect()
        return None
    return session


def run_shell(config: ClientConfig, ctx: AppContext = None) -> int:
    """Run the interactive shell until quit or end of input. Returns an exit code."""
    ctx = ctx or AppContext()
    session = open_session(ctx, config)
    if session is None:
        return 1

    ctx.session = session
    dispatcher = CommandDispatcher(ctx)
    try:
        while True:
            line = ctx.input.read_line(PROMPT)
            if line is None or dispatcher.execute(line):
                break
    finally:
        if not session.closed:
            try:
                ctx.print(session.quit())
            except FTPError as e:
                ctx.print(e)
    return 0
