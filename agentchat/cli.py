#!/usr/bin/env python3
"""
agentchat CLI — talk to agent personas from the terminal.

    COMMAND         ALIASES         WHAT IT DOES
    -------         -------         ----------------------------------
    chat            talk            Chat with an agent definition file
    config          settings        Show or update provider settings
    status          ping            Show provider status, probe Ollama
    models          ls              List models installed in Ollama

Inside a chat: /history prints the log, /retry re-asks after an error,
/clear starts over, /quit leaves.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from agentchat import __version__
from agentchat.config import get_config, load_config, setup_logging
from agentchat.errors import ChatError
from agentchat.orchestrator import ChatOrchestrator

logger = logging.getLogger(__name__)

CONFIG_KEYS = ("provider", "model", "max_tokens", "ollama_url", "anthropic_api_key", "gemini_api_key")


def _orchestrator(args) -> ChatOrchestrator:
    cfg = load_config(Path(args.config)) if getattr(args, "config", None) else get_config()
    setup_logging(cfg)
    return ChatOrchestrator(settings=cfg)


def _print_error(err: ChatError):
    print(f"  ✗  [{err.code}] {err.message}", file=sys.stderr)
    if err.code == "API_KEY_MISSING":
        print("     Set one with: agentchat config --set anthropic_api_key=...", file=sys.stderr)
    elif err.code == "CONNECTION_ERROR":
        print("     Is the provider reachable? For Ollama run: ollama serve", file=sys.stderr)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def _chat_loop(orch: ChatOrchestrator, agent_name: str, definition: str, title: str | None, stream: bool):
    started = await orch.start_chat(agent_name, definition, display_name=title)
    session_id = started["session_id"]
    print(f"\n  ◀ {started['greeting']}\n")

    while True:
        try:
            text = (await asyncio.to_thread(input, "  ▶ ")).strip()
        except EOFError:
            break
        if not text:
            continue
        if text in ("/quit", "/exit", "/q"):
            break
        if text == "/history":
            for entry in orch.get_history(session_id):
                print(f"  [{entry['timestamp'][11:19]}] {entry['role']}: {entry['content']}")
            continue
        if text == "/clear":
            orch.clear_chat(session_id)
            started = await orch.start_chat(agent_name, definition, display_name=title)
            session_id = started["session_id"]
            print(f"\n  ◀ {started['greeting']}\n")
            continue

        message = None if text == "/retry" else text
        try:
            if stream:
                print("\n  ◀ ", end="", flush=True)
                await orch.stream_message(
                    session_id, message,
                    on_chunk=lambda event: print(event.text, end="", flush=True),
                )
                print("\n")
            else:
                result = await orch.send_message(session_id, message)
                print(f"\n  ◀ {result.content}\n")
        except ChatError as e:
            print()
            _print_error(e)
            print("     Your message was kept; type /retry to ask again.")

    orch.clear_chat(session_id)


def cmd_chat(args):
    """Chat with an agent persona loaded from a definition file."""
    path = Path(args.agent_file)
    try:
        definition = path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"  ✗  Cannot read agent file {path}: {e}", file=sys.stderr)
        return 1

    orch = _orchestrator(args)
    agent_name = args.name or path.stem
    try:
        asyncio.run(_chat_loop(orch, agent_name, definition, args.title, stream=not args.no_stream))
    except ChatError as e:
        _print_error(e)
        return 1
    except KeyboardInterrupt:
        print("\n  [chat closed]")
    return 0


def _parse_assignment(item: str) -> tuple[str, object]:
    key, sep, value = item.partition("=")
    key = key.strip()
    if not sep or key not in CONFIG_KEYS:
        raise ValueError(f"Expected KEY=VALUE with KEY one of {', '.join(CONFIG_KEYS)}, got {item!r}")
    if key == "max_tokens":
        return key, int(value)
    return key, value.strip()


def cmd_config(args):
    """Show provider settings, or update them with --set."""
    orch = _orchestrator(args)
    if args.set:
        try:
            partial = dict(_parse_assignment(item) for item in args.set)
            view = orch.update_config(partial)
        except ValueError as e:
            print(f"  ✗  {e}", file=sys.stderr)
            return 1
        except ChatError as e:
            _print_error(e)
            return 1
    else:
        view = orch.get_config()
    print(json.dumps(view, indent=2))
    return 0


def cmd_status(args):
    """Show the active provider and whether Ollama is reachable."""
    orch = _orchestrator(args)
    view = orch.get_config()
    probe = asyncio.run(orch.probe_local_provider())

    mark = "✓" if view.get("has_credentials") else "✗"
    print(f"  {mark}  Provider: {view['provider']} (model {view['model']}, max_tokens {view['max_tokens']})")
    if probe["available"]:
        print(f"  ✓  Ollama at {probe['url']}: {len(probe['models'])} model(s) installed")
    else:
        print(f"  ✗  Ollama at {probe['url']}: not reachable (start it with: ollama serve)")
    return 0 if view.get("has_credentials") else 1


def cmd_models(args):
    """List models installed in the local Ollama server."""
    orch = _orchestrator(args)
    probe = asyncio.run(orch.probe_local_provider())
    if not probe["available"]:
        print(f"  ✗  Ollama at {probe['url']} is not reachable", file=sys.stderr)
        return 1
    for model in probe["models"]:
        size = model.get("size")
        size_str = f"{size / 1e9:.1f} GB" if size else "?"
        print(f"  {model['id']:<40} {size_str}")
    return 0


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under its name and aliases."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentchat",
        description="agentchat — chat with agent personas over Ollama, Anthropic or Gemini.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"agentchat {__version__}",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to config.yaml")

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    def setup_chat(p):
        p.add_argument("agent_file", help="Agent definition file (markdown)")
        p.add_argument("--name", "-n", default=None, help="Agent name (default: file name)")
        p.add_argument("--title", "-t", default=None, help="Display name used in the persona prompt")
        p.add_argument("--no-stream", action="store_true", help="Wait for whole replies")

    _add_command(sub, ["chat", "talk"], "Chat with an agent definition file", cmd_chat, setup_chat)

    def setup_config(p):
        p.add_argument("--set", "-s", action="append", default=None, metavar="KEY=VALUE",
                       help=f"Update a setting ({', '.join(CONFIG_KEYS)}); repeatable")

    _add_command(sub, ["config", "settings"], "Show or update provider settings", cmd_config, setup_config)
    _add_command(sub, ["status", "ping"], "Show provider status and probe Ollama", cmd_status)
    _add_command(sub, ["models", "ls"], "List models installed in Ollama", cmd_models)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0
    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())
