"""
Operator console.

A small state machine: MENU → LISTING → INTERACTING(session) and back.
The loop blocks only on the next operator line; replies from agents
are printed by the reader threads whenever they arrive.
"""

import enum
import sys
from typing import Callable, List, Optional

from . import protocol, transfer
from .errors import OperatorInputError, TransportError
from .registry import Session, SessionRegistry

MENU_TEXT = "Choose an option:\n1. Show all connections\n2. Exit"
MENU_PROMPT = "Enter option > "
LISTING_PROMPT = "Enter connection number to interact or press B to go back > "
COMMAND_PROMPT = 'Enter command or "exit" to go back > '

HELP_TEXT = """
Session commands:
  <command>         Run a shell command on the agent
  download <path>   Ask the agent to send a file
  upload <path>     Push a local file to the agent
  !info             Show session metadata
  !close            Terminate this session
  !help             Show this help
  exit              Back to the main menu
"""


class ConsoleState(enum.Enum):
    MENU = "menu"
    LISTING = "listing"
    INTERACTING = "interacting"


class Console:
    def __init__(self, registry: SessionRegistry, input_func: Callable[[str], str] = input):
        self.registry = registry
        self.input_func = input_func
        self.state: Optional[ConsoleState] = ConsoleState.MENU
        self.session_id: Optional[int] = None
        self._listing: List[int] = []

    def run(self):
        """Drive the console until the operator exits from the menu."""
        while self.state is not None:
            self.step()

    def step(self):
        """Handle one operator interaction in the current state."""
        if self.state is ConsoleState.MENU:
            self._menu()
        elif self.state is ConsoleState.LISTING:
            self._listing_step()
        elif self.state is ConsoleState.INTERACTING:
            self._interact()

    # ===== MENU =====

    def _menu(self):
        print(MENU_TEXT)
        try:
            option = self.input_func(MENU_PROMPT).strip().lower()
        except (EOFError, KeyboardInterrupt):
            print()
            option = "exit"

        if option in ("1", "list"):
            self._enter_listing()
        elif option in ("2", "exit"):
            self.state = None
        else:
            print("Invalid option. Please choose 1 or 2.")

    # ===== LISTING =====

    def _enter_listing(self):
        if not self._render_listing():
            self.state = ConsoleState.MENU
            return
        self.state = ConsoleState.LISTING

    def _render_listing(self) -> bool:
        """Print a fresh snapshot. Returns False if there is nothing to list."""
        sessions = self.registry.snapshot()
        self._listing = [session.id for session in sessions]
        if not sessions:
            print("No active connections.")
            return False
        print("Active connections:")
        for index, session in enumerate(sessions, start=1):
            busy = " [transfer]" if session.transfer_in_progress else ""
            print(f"{index}. {session.label} (cwd: {session.context}){busy}")
        return True

    def _listing_step(self):
        try:
            choice = self.input_func(LISTING_PROMPT).strip().upper()
        except (EOFError, KeyboardInterrupt):
            print()
            self.state = ConsoleState.MENU
            return

        if choice == "B":
            self.state = ConsoleState.MENU
            return
        try:
            session = self.select(choice)
        except OperatorInputError as e:
            print(f"Invalid selection. {e}")
            # Stay here until the operator picks again or goes back.
            self._render_listing()
            return
        self.session_id = session.id
        self.state = ConsoleState.INTERACTING
        print(f"Interacting with {session.label}")

    def select(self, choice: str) -> Session:
        """Resolve a listing number against the live registry."""
        try:
            index = int(choice) - 1
        except ValueError:
            raise OperatorInputError(f"{choice!r} is not a connection number.")
        if not 0 <= index < len(self._listing):
            raise OperatorInputError(f"No connection number {choice}.")
        session = self.registry.get(self._listing[index])
        if session is None:
            raise OperatorInputError("That connection has closed.")
        return session

    # ===== INTERACTING =====

    def _leave_session(self):
        self.session_id = None
        self.state = ConsoleState.MENU

    def _interact(self):
        session = self.registry.get(self.session_id)
        if session is None:
            print("[!] Session is no longer connected.", file=sys.stderr)
            self._leave_session()
            return

        try:
            command = self.input_func(COMMAND_PROMPT)
        except (EOFError, KeyboardInterrupt):
            print()
            self._leave_session()
            return

        # Re-check: the peer may have gone while the operator was typing.
        session = self.registry.get(self.session_id)
        if session is None:
            print("[!] Session is no longer connected.", file=sys.stderr)
            self._leave_session()
            return

        try:
            self.dispatch(session, command)
        except OperatorInputError as e:
            print(f"[!] {e}", file=sys.stderr)
        except TransportError as e:
            print(f"[!] {e}", file=sys.stderr)
            self.registry.terminate(session.id)
            self._leave_session()

    def dispatch(self, session: Session, command: str):
        """Act on one command line for the selected session."""
        stripped = command.strip()
        if not stripped:
            return
        verb, _, argument = stripped.partition(" ")
        if stripped.lower() == "exit":
            self._leave_session()
        elif stripped == "!help":
            print(HELP_TEXT)
        elif stripped == "!info":
            self.show_session_info(session)
        elif stripped == "!close":
            self.registry.terminate(session.id)
            print(f"[i] Session {session.label} terminated.")
            self._leave_session()
        elif verb == "download":
            session.send(protocol.encode_download_request(self._path_argument(verb, argument)))
        elif verb == "upload":
            transfer.send_file(session, self._path_argument(verb, argument))
        else:
            session.send(protocol.encode_shell_command(command))

    @staticmethod
    def _path_argument(verb: str, argument: str) -> str:
        path = argument.strip()
        if not path:
            raise OperatorInputError(f"Usage: {verb} <path>")
        return path

    @staticmethod
    def show_session_info(session: Session):
        print("\n=== Session Info ===")
        print(f"ID:        {session.id}")
        print(f"IP:Port:   {session.label}")
        print(f"Connected: {session.connected_at.strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"Local cwd: {session.context}")
        print(f"Transfer:  {'in progress' if session.transfer_in_progress else 'idle'}")
        print("====================\n")
