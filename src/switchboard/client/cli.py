"""Interactive terminal client for the orchestrator API."""

from __future__ import annotations

import logging
from typing import (
    Any,
    Dict,
    Tuple,
    cast,
)

import httpx

from switchboard.common import (
    AnsiColors,
    colored_print,
)
from switchboard.config import settings

logger = logging.getLogger(__name__)

CHAT_ENDPOINT = "/api/chat"
REQUEST_TIMEOUT = 120.0
CLI_SESSION_ID = "cli-session"


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
    import signal  # pylint: disable=import-outside-toplevel

    # SIGINT must interrupt a blocking read()
    signal.siginterrupt(signal.SIGINT, True)

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
    """POST *data* to the API, retrying with exponential backoff while the server starts."""
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"
    http = client or httpx.Client(timeout=REQUEST_TIMEOUT)

    try:
        for attempt in range(max_retries):
            try:
                response = http.post(api_url, json=data)
            except httpx.ConnectError as exc:
                if attempt == max_retries - 1:
                    logger.error("API request error: %s", exc)
                    break
                retry_delay = 0.5 * (2**attempt)  # 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                import time  # pylint: disable=import-outside-toplevel

                time.sleep(retry_delay)
                continue
            except httpx.HTTPError as exc:
                logger.error("API request error: %s", exc)
                return {"error": f"Error connecting to API: {exc}"}

            try:
                body = response.json()
            except ValueError:
                body = {"error": response.text}
            if response.is_error:
                logger.error("API returned %d: %s", response.status_code, body)
            return cast(Dict[str, Any], body)
    finally:
        if client is None:
            http.close()

    return {"error": f"Failed to connect to API after {max_retries} attempts"}


def render_reply(response: Dict[str, Any]) -> str:
    """The text to show for one API response."""
    if response.get("final_result"):
        return str(response["final_result"])
    if response.get("response"):
        return str(response["response"])
    if response.get("error"):
        return f"⚠️ {response['error']}"
    return "No response from API"


def run_cli() -> None:
    """Run the shell that sends each line to ``/api/chat`` under one session id."""
    colored_print(
        "\n🔀 Switchboard shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN
    )
    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break
        if not user_msg:
            continue
        if user_msg.lower() in {"exit", "quit"}:
            break

        response = call_api(CHAT_ENDPOINT, {"message": user_msg, "sessionId": CLI_SESSION_ID})
        color = AnsiColors.RED if response.get("success") is False else AnsiColors.YELLOW
        colored_print(render_reply(response), color)


if __name__ == "__main__":
    run_cli()
