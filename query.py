#!/usr/bin/env python3
"""Ad hoc query runner for the Recommendation Orchestrator.

Run requests directly without starting the API server.

Usage:
    python query.py "Give me 3 ideas for a 40-minute Tuesday meal"
    python query.py --debug "Your query"          # Show full JSON response
    python query.py --user USER_ID "Your query"   # Load preferences/history for a stored user
    python query.py --weekly --user USER_ID       # Generate the user's weekly set

Features:
- Direct orchestrator execution (same pipeline as POST /ai-chat)
- Suggestions rendered as markdown with rich
- Debug mode to display full JSON with provenance and telemetry
- Clean exit after completion
"""

import asyncio
import json
import sys
from typing import Any, Dict, Optional

from rich.console import Console
from rich.markdown import Markdown

from src.models.models import ChatRequest
from src.orchestrator.errors import OrchestrationError
from src.orchestrator.orchestrator import initialize_orchestrator
from src.utils.logger import logger

console = Console()

USAGE = 'Usage: python query.py [--debug] [--user USER_ID] [--weekly] "<your query>"'


def render_markdown(response: Dict[str, Any]) -> str:
    """Turn a chat response into markdown: the reply followed by one entry per suggestion.

    Args:
        response: Orchestrator chat response

    Returns:
        Markdown text, empty if the response carries no reply and no suggestions
    """
    data = response.get("data") or {}
    parts = []
    if data.get("reply"):
        parts.append(data["reply"])
    for index, suggestion in enumerate(data.get("suggestions") or [], start=1):
        title = suggestion.get("title", "Untitled")
        meta = " | ".join(
            str(value)
            for value in (suggestion.get("cuisine"), suggestion.get("difficulty"), suggestion.get("time_estimate"))
            if value
        )
        parts.append(f"**{index}. {title}**" + (f" ({meta})" if meta else ""))
        if suggestion.get("description"):
            parts.append(suggestion["description"])
        if suggestion.get("reason_for_recommendation"):
            parts.append(f"_{suggestion['reason_for_recommendation']}_")
    return "\n\n".join(parts)


async def _run(query: Optional[str], user_id: Optional[str], weekly: bool) -> Dict[str, Any]:
    orchestrator = await initialize_orchestrator()
    try:
        if weekly:
            return await orchestrator.generate_weekly(user_id)

        # A JSON body is passed through as-is, plain text becomes one user message
        try:
            body = json.loads(query)
            if not isinstance(body, dict) or "messages" not in body:
                body = {"messages": [{"role": "user", "content": query}]}
        except json.JSONDecodeError:
            body = {"messages": [{"role": "user", "content": query}]}
        if user_id:
            body.setdefault("userId", user_id)
        return await orchestrator.handle(ChatRequest.model_validate(body))
    finally:
        await orchestrator.store.close()


def run_query(query: Optional[str], debug: bool = False, user_id: Optional[str] = None, weekly: bool = False) -> None:
    """Execute a single ad hoc request and print the response.

    Args:
        query: The user query (plain text or a JSON request body). Ignored for --weekly.
        debug: If True, display the full JSON response.
        user_id: Optional stored user whose preferences and history are used.
        weekly: If True, run the weekly batch for ``user_id`` instead of a chat.
    """
    try:
        logger.info(f"Running {'weekly batch' if weekly else 'query'}" + (f" for user {user_id}" if user_id else ""))
        logger.info("---")
        response = asyncio.run(_run(query, user_id, weekly))
        logger.info("---")
        console.print()

        if debug or weekly:
            console.print("[bold cyan]Debug Mode: Full Response[/bold cyan]" if debug else "[bold cyan]Weekly Result[/bold cyan]")
            console.print("[dim]" + "=" * 60 + "[/dim]")
            console.print_json(data=response)
            console.print("[dim]" + "=" * 60 + "[/dim]")
            console.print()
            if weekly:
                return

        response_text = render_markdown(response)
        if response_text:
            console.print(Markdown(response_text))
        else:
            console.print("[yellow]No response text found[/yellow]")

        console.print(
            f"[dim]Served by {response.get('modelUsed')} ({response.get('provider')})"
            f"{' via fallback' if response.get('usedFallback') else ''}[/dim]"
        )

    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except OrchestrationError as e:
        console.print(f"[red]✗ Error ({e.status_code}): {e.message}[/red]")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Query execution failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(USAGE)
        print("")
        print("Examples:")
        print('  python query.py "Give me 3 ideas for a 40-minute Tuesday meal"')
        print('  python query.py --debug "Something Italian with chicken"')
        print('  python query.py --user 42 "A cocktail for a summer party"')
        print("  python query.py --weekly --user 42")
        sys.exit(1)

    debug_mode = False
    weekly_mode = False
    user_id = None
    argv_start = 1

    while argv_start < len(sys.argv) and sys.argv[argv_start].startswith("--"):
        if sys.argv[argv_start] == "--debug":
            debug_mode = True
            argv_start += 1
        elif sys.argv[argv_start] == "--weekly":
            weekly_mode = True
            argv_start += 1
        elif sys.argv[argv_start] == "--user":
            argv_start += 1
            if argv_start >= len(sys.argv):
                print("Error: --user flag requires a user id")
                sys.exit(1)
            user_id = sys.argv[argv_start]
            argv_start += 1
        else:
            print(f"Unknown flag: {sys.argv[argv_start]}")
            sys.exit(1)

    if weekly_mode and not user_id:
        print("Error: --weekly requires --user USER_ID")
        sys.exit(1)

    if not weekly_mode and argv_start >= len(sys.argv):
        print("Error: No query provided")
        print(USAGE)
        sys.exit(1)

    # Join all arguments after flags as the query (handles queries with spaces)
    query = " ".join(sys.argv[argv_start:]) or None

    run_query(query, debug=debug_mode, user_id=user_id, weekly=weekly_mode)
