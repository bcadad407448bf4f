#!/usr/bin/env python3
"""
🤖 Chat with Lumo - Interactive Terminal Interface

Just run this script and start chatting!
Lumo will greet you first, then you can have a conversation.

Usage:
    python3 chat_with_lumo.py

Commands:
    /quit or /exit - Exit the chat
    /clear - Start a fresh session
    /verbose - Toggle verbose mode (show suggestions, commands and timing)
    /debug - Lumo's own debug console (memory and health)
"""

import logging
import sys
import time
import uuid
from typing import Any, Dict

from dotenv import load_dotenv

load_dotenv()

from lumo.config import settings

logging.basicConfig(level=settings.LOG_LEVEL)


# Colors for terminal output
class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'
    CYAN = '\033[96m'
    MAGENTA = '\033[95m'


def print_lumo(message: str):
    """Print Lumo's message in blue"""
    print(f"\n{Colors.BLUE}{Colors.BOLD}Lumo:{Colors.END} {message}\n")


def print_verbose(message: str):
    """Print verbose info in yellow"""
    print(f"{Colors.YELLOW}[VERBOSE] {message}{Colors.END}")


def print_system(message: str):
    """Print system messages in cyan"""
    print(f"{Colors.CYAN}{message}{Colors.END}")


def print_separator():
    """Print a separator line"""
    print(f"{Colors.MAGENTA}{'=' * 80}{Colors.END}")


def print_suggestions(response: Dict[str, Any]):
    suggestions = response.get("suggestions") or []
    if suggestions:
        labels = "  ".join(f"[{s.get('icon', '')} {s['label']}]".replace("[ ", "[") for s in suggestions)
        print_system(labels)


def new_engine(engine_cls, knowledge, store):
    session_id = f"terminal-{uuid.uuid4().hex[:8]}"
    return engine_cls(knowledge=knowledge, store=store, session_id=session_id)


def greet(engine):
    selection = engine.select_greeting()
    print_lumo(engine.add_easter_egg(selection.message))
    welcome = engine.get_welcome_message()
    if welcome:
        print_system(welcome)
    if selection.follow_up_id:
        follow_up = engine.get_follow_up(selection.follow_up_id)
        if follow_up:
            print_system(follow_up.text)
    print_suggestions({"suggestions": selection.suggestions})


def main():
    # Initialize
    print_separator()
    print(f"{Colors.BOLD}{Colors.CYAN}🤖 LUMO - Nate's Portfolio Assistant{Colors.END}")
    print_separator()
    print("\nInitializing...")

    try:
        from lumo.config.knowledge import load_knowledge
        from lumo.flows.conversation_flow import LumoEngine
        from lumo.observability import initialize_langsmith
        from lumo.state.storage import build_store

        initialize_langsmith()
        knowledge = load_knowledge()
        store = build_store()
        engine = new_engine(LumoEngine, knowledge, store)
        print_system("✅ Lumo initialized and ready to chat!")
        print_system("\nCommands: /quit (exit) | /clear (reset) | /verbose (toggle) | /debug (console)\n")

    except ImportError as e:
        print(f"{Colors.RED}❌ Failed to import required modules: {e}{Colors.END}")
        print(f"{Colors.YELLOW}Make sure you're in the project directory and dependencies are installed.{Colors.END}")
        sys.exit(1)
    except Exception as e:
        print(f"{Colors.RED}❌ Initialization failed: {e}{Colors.END}")
        sys.exit(1)

    verbose = False
    greet(engine)

    # Main chat loop
    while True:
        try:
            user_input = input(f"{Colors.GREEN}You: {Colors.END}").strip()

            if not user_input:
                nudge = engine.get_proactive_nudge()
                if nudge:
                    print_lumo(nudge["text"])
                    print_suggestions(nudge)
                continue

            if user_input.lower() in ['/quit', '/exit', 'quit', 'exit']:
                print_system("\n👋 Thanks for chatting! Goodbye!")
                break

            if user_input.lower() in ['/clear', 'clear']:
                engine.shutdown()
                engine = new_engine(LumoEngine, knowledge, store)
                print_system("\n🗑️  Started a fresh session!\n")
                greet(engine)
                continue

            if user_input.lower() == '/verbose':
                verbose = not verbose
                print_system(f"\n🔧 Verbose mode: {'ON' if verbose else 'OFF'}\n")
                continue

            started = time.perf_counter()
            response = engine.generate_response(user_input)
            elapsed_ms = (time.perf_counter() - started) * 1000

            print_lumo(response["text"])
            print_suggestions(response)

            if verbose:
                if response.get("command"):
                    print_verbose(f"Command: {response['command']}")
                if response.get("media"):
                    print_verbose(f"Media: {response['media'].get('url')}")
                state = engine.get_state()
                print_verbose(f"Last intent: {state['dialogue']['last_intent']}")
                print_verbose(f"Flow node: {state['dialogue']['flow_token']['current_node_id']}")
                print_verbose(f"Answered in {elapsed_ms:.0f}ms")

        except KeyboardInterrupt:
            print_system("\n\n👋 Interrupted. Thanks for chatting!")
            break
        except EOFError:
            print_system("\n\n👋 EOF received. Goodbye!")
            break

    engine.shutdown()


if __name__ == "__main__":
    main()
