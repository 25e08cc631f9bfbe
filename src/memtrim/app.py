"""memtrim - Command surface: interactive menu and one-shot commands."""

import argparse
import sys
from collections.abc import Callable
from enum import Enum

from memtrim.backends import ProcessBackend, detect_backend
from memtrim.enumerator import ProcessEnumerator
from memtrim.log import configure_logging
from memtrim.models import ProcessRecord, TrimResult
from memtrim.terminator import ProcessTerminator
from memtrim.trimmer import MemoryTrimmer

USAGE = "\n  {prog} trim\n  {prog} list <thresholdMB> [--kill]\n  {prog} alt"

MENU = """
Menu:
 1) Trim memory of this process
 2) List processes by memory use (and optionally terminate them)
 3) Trim memory and list processes (1+2)
 4) Exit"""

AFFIRMATIVE = frozenset({"y", "yes", "s", "si", "sí"})


class MenuState(Enum):
    """States of the interactive menu."""

    MENU_IDLE = "menu_idle"
    AWAITING_OPTION = "awaiting_option"
    AWAITING_THRESHOLD = "awaiting_threshold"
    AWAITING_KILL_CONFIRMATION = "awaiting_kill_confirmation"
    EXECUTING = "executing"
    EXIT = "exit"


class MenuChoice(Enum):
    """Operations offered by the interactive menu."""

    TRIM = "trim"
    LIST = "list"
    TRIM_AND_LIST = "trim+list"
    EXIT = "exit"


MENU_OPTIONS = {
    "1": MenuChoice.TRIM,
    "trim": MenuChoice.TRIM,
    "2": MenuChoice.LIST,
    "list": MenuChoice.LIST,
    "3": MenuChoice.TRIM_AND_LIST,
    "trim+list": MenuChoice.TRIM_AND_LIST,
    "both": MenuChoice.TRIM_AND_LIST,
    "4": MenuChoice.EXIT,
    "exit": MenuChoice.EXIT,
    "quit": MenuChoice.EXIT,
    "q": MenuChoice.EXIT,
}


def parse_threshold(text: str) -> int | None:
    """Parse a non-negative whole number of megabytes, or return None."""
    text = text.strip()
    if not text.isdecimal():
        return None
    return int(text)


def is_affirmative(text: str) -> bool:
    """Check whether an answer to a yes/no prompt means yes."""
    return text.strip().lower() in AFFIRMATIVE


class Dispatcher:
    """
    Sequences trim, listing and termination for both entry paths.

    The interactive menu and the one-shot commands share the same execution
    methods, so the OS-facing behavior is identical; only the way input is
    gathered differs.
    """

    def __init__(
        self,
        backend: ProcessBackend | None = None,
        input_func: Callable[[str], str] = input,
    ) -> None:
        """
        Initialize the Dispatcher.

        Args:
            backend: OS capability layer shared by all components.
            input_func: Reads one line of interactive input given a prompt.
        """
        backend = backend or detect_backend()
        self.trimmer = MemoryTrimmer(backend)
        self.enumerator = ProcessEnumerator(backend)
        self.terminator = ProcessTerminator(backend)
        self._input = input_func
        self.state = MenuState.MENU_IDLE

    # Execution

    def trim(self) -> TrimResult:
        """Trim this process and print its resident size before and after."""
        result = self.trimmer.trim_current_process(
            on_before=lambda before: print(f"Before trim: {before // 1024} KB", flush=True)
        )
        print(f"After  trim: {result.after_kb} KB")
        return result

    def list_processes(self, threshold_mb: int, kill: bool = False) -> list[ProcessRecord]:
        """Print processes at or above the threshold, terminating them if asked."""
        records = self.enumerator.list_processes_at_or_above(threshold_mb)
        if not records:
            print(f"No processes found using >= {threshold_mb} MB")

        for record in records:
            print(f"PID={record.pid} name={record.name} rssMB={record.resident_mb}")
            if kill:
                print(f"  Attempting to terminate PID {record.pid} ... ", end="", flush=True)
                print("OK" if self.terminator.terminate(record.pid) else "FAILED")
        return records

    def alternate(self) -> TrimResult:
        """Demonstration path: a single trim with explanatory messages."""
        print("Alternate mode: trimming current process working set...")
        result = self.trim()
        if result.requested:
            print(f"Released {result.released_bytes // 1024} KB via {result.method}.")
        else:
            print("No trim request was accepted on this platform.")
        print("Done. Use the program with arguments to list/kill processes.")
        return result

    # One-shot commands

    def run_command(self, args: argparse.Namespace) -> int:
        """Run a parsed one-shot command and return the exit status."""
        if args.command == "trim":
            self.trim()
        elif args.command == "list":
            self.list_processes(args.threshold, kill=args.kill)
        elif args.command == "alt":
            self.alternate()
        return 0

    # Interactive menu

    def run_interactive(self) -> int:
        """Run the menu until the user exits or input ends."""
        self.state = MenuState.MENU_IDLE
        while self.state is not MenuState.EXIT:
            print(MENU)
            self.state = MenuState.AWAITING_OPTION
            option = self._prompt("Choose an option: ")
            if option is None:
                break
            self.handle_option(option)

        self.state = MenuState.EXIT
        return 0

    def handle_option(self, option: str) -> None:
        """Advance the state machine for one menu selection."""
        choice = MENU_OPTIONS.get(option.strip().lower())
        if choice is None:
            print("Invalid option. Try again.")
            self.state = MenuState.MENU_IDLE
            return

        if choice is MenuChoice.EXIT:
            self.state = MenuState.EXIT
            return

        if choice in (MenuChoice.TRIM, MenuChoice.TRIM_AND_LIST):
            self.state = MenuState.EXECUTING
            self.trim()

        if choice in (MenuChoice.LIST, MenuChoice.TRIM_AND_LIST):
            self._ask_and_list()
            if self.state is MenuState.EXIT:
                return

        self.state = MenuState.MENU_IDLE

    def _ask_and_list(self) -> None:
        self.state = MenuState.AWAITING_THRESHOLD
        answer = self._prompt("Threshold in MB for listing processes: ")
        if answer is None:
            self.state = MenuState.EXIT
            return

        threshold = parse_threshold(answer)
        if threshold is None:
            print("Invalid threshold. Back to the menu.")
            self.state = MenuState.MENU_IDLE
            return

        self.state = MenuState.AWAITING_KILL_CONFIRMATION
        answer = self._prompt("Try to terminate the listed processes? (y/n): ")
        if answer is None:
            self.state = MenuState.EXIT
            return

        self.state = MenuState.EXECUTING
        print(f"Processes using >= {threshold} MB:")
        self.list_processes(threshold, kill=is_affirmative(answer))

    def _prompt(self, text: str) -> str | None:
        try:
            return self._input(text)
        except EOFError:
            return None


class _UsageParser(argparse.ArgumentParser):
    """ArgumentParser that prints usage to stdout and exits with status 1."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stdout)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _threshold_arg(value: str) -> int:
    threshold = parse_threshold(value)
    if threshold is None:
        raise argparse.ArgumentTypeError(f"invalid threshold: {value!r}")
    return threshold


def build_parser(prog: str | None = None) -> argparse.ArgumentParser:
    """Build the one-shot command parser."""
    # Accepted before or after the subcommand; SUPPRESS keeps a subcommand
    # from resetting a flag given earlier
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="log debug details to stderr",
    )

    parser = _UsageParser(
        prog=prog,
        parents=[common],
        description="Trim this process's memory, list memory-hungry processes and "
        "optionally terminate them. Runs an interactive menu without arguments.",
    )
    usage = USAGE.format(prog=parser.prog)
    parser.usage = usage

    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.add_parser(
        "trim", usage=usage, parents=[common], help="trim this process's resident memory"
    )
    list_parser = subparsers.add_parser(
        "list", usage=usage, parents=[common], help="list processes using at least thresholdMB"
    )
    list_parser.add_argument("threshold", type=_threshold_arg, metavar="thresholdMB")
    list_parser.add_argument(
        "--kill", action="store_true", help="try to terminate every listed process"
    )
    subparsers.add_parser(
        "alt", usage=usage, parents=[common], help="demonstration trim with explanations"
    )
    return parser


def main(
    argv: list[str] | None = None,
    backend: ProcessBackend | None = None,
    input_func: Callable[[str], str] = input,
) -> int:
    """Entry point for the memtrim command."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1

    configure_logging(getattr(args, "verbose", False))
    dispatcher = Dispatcher(backend=backend, input_func=input_func)
    try:
        if args.command is None:
            return dispatcher.run_interactive()
        return dispatcher.run_command(args)
    except KeyboardInterrupt:
        print()
        return 130


if __name__ == "__main__":
    sys.exit(main())
