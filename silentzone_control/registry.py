"""
CommandRegistry - Explicit command registration

Bounded Context: Command registration and validation
Responsibilities:
  - Register tracking commands with handlers
  - Validate command existence and required payload fields before execution
  - Provide introspection (available_commands, get_help)

Threading: Thread-safe (uses lock for write operations)
Pattern: Registry with explicit registration
"""

from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple
import threading


class CommandNotAvailableError(Exception):
    """Raised when attempting to execute an unregistered command"""
    pass


class InvalidCommandError(ValueError):
    """Raised when a command payload lacks a required field"""
    pass


class CommandRegistry:
    """
    Registry for tracking commands with explicit registration.

    Handlers receive the full payload when one is given, and are called
    with no arguments otherwise.

    Example:
        registry = CommandRegistry()
        registry.register('resync', handler.resync, "Reload places and re-anchor")
        registry.register(
            'enable_place', handler.enable_place,
            "Enable one place", required_fields=('place_id',),
        )

        registry.execute('enable_place', {'command': 'enable_place', 'place_id': 'home'})
    """

    def __init__(self):
        self._commands: Dict[str, Callable] = {}
        self._descriptions: Dict[str, str] = {}
        self._required: Dict[str, Tuple[str, ...]] = {}
        self._lock = threading.Lock()

    def register(
        self,
        command: str,
        handler: Callable,
        description: str,
        required_fields: Iterable[str] = (),
    ) -> None:
        """
        Register a command with its handler function.

        Args:
            command: Command name (lowercase, no spaces)
            handler: Callable that executes the command
            description: Human-readable description for help text
            required_fields: Payload keys the handler needs

        Raises:
            ValueError: If command already registered
        """
        with self._lock:
            if command in self._commands:
                raise ValueError(f"Command '{command}' already registered")

            self._commands[command] = handler
            self._descriptions[command] = description
            self._required[command] = tuple(required_fields)

    def execute(self, command: str, command_data: Optional[Dict[str, Any]] = None) -> Any:
        """
        Execute a registered command.

        Args:
            command: Command name to execute
            command_data: Full JSON payload

        Returns:
            Whatever the handler returns

        Raises:
            CommandNotAvailableError: If command not registered
            InvalidCommandError: If a required payload field is missing
        """
        if command not in self._commands:
            raise CommandNotAvailableError(
                f"Command '{command}' not available. "
                f"Available commands: {', '.join(sorted(self.available_commands))}"
            )

        handler = self._commands[command]
        missing = [f for f in self._required[command] if not (command_data or {}).get(f)]
        if missing:
            raise InvalidCommandError(
                f"Command '{command}' requires field(s): {', '.join(missing)}"
            )

        if command_data is not None:
            return handler(command_data)
        return handler()

    def is_available(self, command: str) -> bool:
        return command in self._commands

    @property
    def available_commands(self) -> Set[str]:
        """Snapshot of registered command names."""
        return set(self._commands.keys())

    def get_help(self) -> Dict[str, str]:
        """Command -> description (snapshot)."""
        return dict(self._descriptions)

    def count(self) -> int:
        return len(self._commands)
