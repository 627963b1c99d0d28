"""
Reply Engine CLI - operator console for the reply engine.

Usage:
    reply-engine chat [--conversation=ID] [--name=NAME] [--config=DIR]
    reply-engine config show [--config=DIR]
    reply-engine config validate [--config=DIR]
    reply-engine version

Chat commands:
    /stats              Show provider statistics
    /switch PROVIDER    Switch the primary provider (gemini, groq)
    /reset-stats        Reset provider statistics
    /clear              Forget this conversation
    /memory             Show memory usage
    /quit               Leave the chat
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import dotenv

from reply_core import __version__
from reply_core.config.config_manager import ConfigManager, ConfigurationError
from reply_core.llm.interfaces.llm_provider_interface import InvalidProviderError
from reply_core.monitoring.logging_setup import configure_logging
from reply_core.persona import build_instruction
from reply_core.service import ReplyService
from reply_core.utils.text_chunking import split_message

logger = logging.getLogger(__name__)


class ReplyEngineCLI:
    """Reply engine command line interface."""

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = config_dir
        self.config_manager: Optional[ConfigManager] = None
        self.service: Optional[ReplyService] = None

    def load_config(self, validate: bool = True) -> ConfigManager:
        self.config_manager = ConfigManager(self.config_dir, validate=validate)
        return self.config_manager

    def config_show_command(self) -> int:
        config = self.load_config(validate=False)
        print(json.dumps(config.to_dict(), indent=2, ensure_ascii=False))
        return 0

    def config_validate_command(self) -> int:
        try:
            self.load_config()
        except ConfigurationError as e:
            print(f"❌ {e}")
            return 1
        print("✅ Configuration is valid")
        return 0

    def format_stats(self) -> str:
        stats = self.service.get_stats()
        lines = [f"Current provider: {stats['current_provider'].upper()}"]
        for name, state in stats["providers"].items():
            lines.append(
                f"{name}: key {state['current_key_index'] + 1}/{state['total_keys']} "
                f"✅{state['success']} ❌{state['errors']}"
            )
        lines.append(f"Fallbacks: {stats['fallbacks']}")
        last_error = stats["last_error"]
        lines.append(f"Last error: {last_error['provider']}" if last_error else "No errors")
        return "\n".join(lines)

    def handle_command(self, line: str, conversation_id: str) -> Optional[str]:
        """
        Run a slash command.

        Returns:
            Text to print, or None when the chat should end
        """
        parts = line.split()
        command = parts[0].lower()

        if command == "/quit":
            return None
        if command == "/stats":
            return self.format_stats()
        if command == "/switch":
            if len(parts) != 2:
                return "❌ Usage: /switch PROVIDER"
            try:
                result = self.service.switch_provider(parts[1].lower())
            except InvalidProviderError as e:
                return f"❌ {e}"
            return f"✅ Provider switched: {result['previous']} -> {result['current']}"
        if command == "/reset-stats":
            self.service.reset_stats()
            return "✅ Statistics reset"
        if command == "/clear":
            if self.service.clear(conversation_id):
                return "🧹 Memory cleared"
            return "Nothing to clear"
        if command == "/memory":
            stats = self.service.memory_stats()
            return (
                f"Conversations: {stats['conversation_count']}, "
                f"messages: {stats['total_message_count']}"
            )
        return f"❌ Unknown command: {command}"

    async def chat_command(self, conversation_id: str, user_name: str) -> int:
        try:
            config = self.load_config()
        except ConfigurationError as e:
            print(f"❌ {e}")
            return 1

        self.service = ReplyService.from_config(config.config)
        instruction = build_instruction(user_name, config.config.persona.system_prompt)
        loop = asyncio.get_running_loop()

        self.service.start_idle_sweep()
        print(f"Chatting as {user_name} in conversation {conversation_id}. /quit to leave.")
        try:
            while True:
                try:
                    line = await loop.run_in_executor(None, input, "> ")
                except EOFError:
                    break

                line = line.strip()
                if not line:
                    continue

                if line.startswith("/"):
                    output = self.handle_command(line, conversation_id)
                    if output is None:
                        break
                    print(output)
                    continue

                reply = await self.service.respond(conversation_id, line, instruction)
                for chunk in split_message(reply):
                    print(chunk)
        finally:
            await self.service.close()

        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reply-engine", description="Reply engine console")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Chat through the reply engine")
    chat.add_argument("--conversation", default="console", help="Conversation id")
    chat.add_argument("--name", default="kamu", help="Name the assistant addresses")
    chat.add_argument("--config", dest="config_dir", help="Configuration directory")

    config = subparsers.add_parser("config", help="Inspect configuration")
    config.add_argument("action", choices=["show", "validate"])
    config.add_argument("--config", dest="config_dir", help="Configuration directory")

    subparsers.add_parser("version", help="Show version information")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    dotenv.load_dotenv()
    args = build_parser().parse_args(argv)

    if args.command == "version":
        print(f"reply-engine {__version__}")
        return 0

    cli = ReplyEngineCLI(args.config_dir)

    if args.command == "config":
        if args.action == "show":
            return cli.config_show_command()
        return cli.config_validate_command()

    try:
        manager = cli.load_config(validate=False)
        configure_logging(manager.config.logging, debug=manager.config.debug)
    except ConfigurationError as e:
        print(f"❌ {e}")
        return 1

    return asyncio.run(cli.chat_command(args.conversation, args.name))


if __name__ == "__main__":
    sys.exit(main())
