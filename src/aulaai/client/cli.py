"""CLI client for the aula-ai API."""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    Tuple,
    cast,
)

import httpx

from aulaai.common import (
    Style,
    emit,
)
from aulaai.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(
    endpoint: str,
    data: Dict[str, Any],
    max_retries: int = 5,
    client: httpx.Client | None = None,
) -> Dict[str, Any]:
    """POST *data* to the API and return the JSON body, retrying while the server starts."""
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"
    http = client or httpx.Client(timeout=settings.LLM_TIMEOUT + 30.0)

    try:
        for attempt in range(max_retries):
            try:
                response = http.post(api_url, json=data)
            except httpx.ConnectError as e:
                if attempt < max_retries - 1:
                    retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                    logger.info(
                        "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                        retry_delay,
                        attempt + 1,
                        max_retries,
                    )
                    time.sleep(retry_delay)
                    continue
                return {"success": False, "error": f"Error connecting to API: {e}"}
            except httpx.HTTPError as e:
                logger.error("API request error: %s", str(e))
                return {"success": False, "error": f"Error connecting to API: {e}"}

            try:
                body = cast(Dict[str, Any], response.json())
            except ValueError:
                body = {"success": False, "error": response.text}
            if response.is_error:
                error = body.get("error") or body.get("detail") or response.reason_phrase
                return {"success": False, "error": f"API error: {error}"}
            return body
    finally:
        if client is None:
            http.close()

    return {"success": False, "error": f"Failed to connect to API after {max_retries} attempts"}


def run_cli(agent: str = "research_agent", model: str | None = None) -> None:
    """Run an interactive chat against the API."""
    model = model or settings.DEFAULT_MODEL
    conversation_id: int | None = None

    emit(
        f"\nAula AI shell [{agent} / {model}] - type 'exit' or 'quit' (or Ctrl+C) to exit",
        Style.HEADING,
    )
    while True:
        emit("\nYou: ", Style.PROMPT, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        response = call_api(
            "/api/chat",
            {
                "query": user_msg,
                "model": model,
                "agent": agent,
                "conversation_id": conversation_id,
            },
        )
        if not response.get("success", False):
            emit(response.get("error", "No response from API"), Style.ERROR)
            continue

        conversation_id = response.get("conversation_id", conversation_id)
        emit(response.get("response", ""), Style.ANSWER)


if __name__ == "__main__":
    run_cli()
