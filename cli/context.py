"""Persistent state management for the Cipher Market CLI.

Tracks the connected signing account and the recent actions.
Stored in `<MARKET_CLI_DIR>/context.json`.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from functools import wraps
from pathlib import Path
from typing import Callable

import typer
from backend.config import settings


@dataclass
class CliContext:
    active_account: str | None = None
    history: list[str] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    def remember(self, action: str) -> None:
        """Append *action* to the history, keeping the newest entries only."""
        self.history.append(action)
        del self.history[: max(0, len(self.history) - settings.history_limit)]

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            raw = json.loads(data)
            return cls(**raw)
        except (json.JSONDecodeError, TypeError):
            return cls()


def _get_context_path() -> Path:
    """Return the path to the context JSON file."""
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Load the CLI context from disk. Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()

    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError:
        return CliContext()


def save_context(ctx: CliContext) -> None:
    """Save the CLI context to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


def require_account(func: Callable) -> Callable:
    """Decorator for CLI commands that write to the contract.

    Aborts execution if no account is connected.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = load_context()
        if not ctx.active_account:
            typer.echo("❌ No wallet connected.")
            typer.echo("Run 'wallet connect <address>' first.")
            raise typer.Exit(code=1)
        return func(*args, **kwargs)

    return wrapper
