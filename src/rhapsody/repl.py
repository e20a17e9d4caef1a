"""Interactive REPL for the Rhapsody GM assistant."""

from __future__ import annotations

import asyncio
import logging
import os

from . import __version__
from .app import Action, RhapsodyApp
from .chat import TurnStatus
from .config import RhapsodyConfig
from .markup import strip_html
from .models import Message
from .operator import ConsoleOperator
from .provider_factory import ProviderFactory
from .telemetry import TelemetryConfig, configure_tracing

# Slash commands that map straight onto an Action
_COMMANDS: dict[str, Action] = {
    "/session": Action.START_SESSION,
    "/endsession": Action.END_SESSION,
    "/scene": Action.NEW_SCENE,
    "/endscene": Action.END_SCENE,
    "/restart": Action.RESTART_SCENE,
    "/pin": Action.TOGGLE_PIN,
    "/clear": Action.CLEAR_HISTORY,
    "/resetnum": Action.RESET_NUMBERING,
}

_HELP = """Commands:
  /session [name]   start a new session (ends the current one)
  /endsession       end the current session
  /scene [name]     start a new scene
  /endscene         summarise and archive the current scene
  /restart          clear the current scene's messages
  /pin <id>         pin or unpin a message
  /clear            delete archived sessions and scenes
  /resetnum         reset session numbering
  /status           show session, scene and token usage
  /help             show this help
  /quit             exit
Anything else is sent to the GM assistant."""


def _action_kwargs(action: Action, argument: str) -> dict[str, str] | None:
    """Keyword arguments for *action*, or ``None`` when a required one is missing."""
    if action in (Action.START_SESSION, Action.NEW_SCENE):
        return {"name": argument} if argument else {}
    if action == Action.TOGGLE_PIN:
        return {"message_id": argument} if argument else None
    return {}


def _print_status(app: RhapsodyApp) -> None:
    view = app.build_view()
    controls = view.scene_controls
    print(f"  Session: {controls.session_name or '-'}")
    print(f"  Scene: {controls.scene_name or '-'}")
    print(f"  Messages: {len(view.messages)}")
    warning = "  (near limit)" if view.token_warning else ""
    print(f"  Context: {view.total_tokens}/{app.config.max_context_tokens} tokens{warning}")
    print(f"  Archived scenes: {len(app.state.scene_history)}")
    for message in view.messages:
        pin = "*" if message.is_pinned else " "
        print(f"  {pin} {message.id}  {message.sender}: {strip_html(message.content)[:60]}")


class _StreamPrinter:
    """Prints only the newly arrived part of a streamed reply."""

    def __init__(self) -> None:
        self._printed = 0

    def __call__(self, message: Message) -> None:
        text = message.raw_content or ""
        print(text[self._printed :], end="", flush=True)
        self._printed = len(text)


async def async_main() -> None:
    """Async entry point — uses the provider resolved by ProviderFactory.

    Set ``RHAPSODY_LLM_PROVIDER`` to ``deepseek`` or ``stub``.
    """
    config = RhapsodyConfig.from_env()
    tracer = configure_tracing(TelemetryConfig(exporter=config.trace_exporter))
    provider = ProviderFactory.create(config)
    app = RhapsodyApp(config, provider=provider, operator=ConsoleOperator())

    print(f"Rhapsody REPL v{__version__}")
    print(f"Provider: {ProviderFactory.describe(provider)}")
    print("Type /help for commands, /quit to exit")
    print()

    while True:
        try:
            user_input = await asyncio.to_thread(input, "gm> ")
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            break

        stripped = user_input.strip()
        if not stripped:
            continue
        command, _, argument = stripped.partition(" ")
        argument = argument.strip()

        if command in ("/quit", "/exit"):
            print("Bye!")
            break
        if command == "/help":
            print(_HELP)
            continue
        if command == "/status":
            _print_status(app)
            continue
        if command in _COMMANDS:
            action = _COMMANDS[command]
            kwargs = _action_kwargs(action, argument)
            if kwargs is None:
                print(f"  Usage: {command} <id>")
                continue
            await app.dispatch(action, **kwargs)
            continue
        if command.startswith("/"):
            print(f"  Unknown command {command}. Type /help for commands.")
            continue

        outcome = await app.submit(stripped, on_partial=_StreamPrinter())
        if outcome.status == TurnStatus.COMPLETED:
            print()
        elif outcome.status == TurnStatus.FAILED and outcome.message is not None:
            print(f"\n  {strip_html(outcome.message.content)}")

    tracer.shutdown()


def run() -> None:
    """Sync wrapper that launches :func:`async_main` via ``asyncio.run``."""
    logging.basicConfig(
        level=os.environ.get("RHAPSODY_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(async_main())


if __name__ == "__main__":
    run()
