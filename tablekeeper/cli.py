"""Command-line interface for TableKeeper - HTTP client for the server API."""

import argparse
import json
import logging
import sys

import httpx

from tablekeeper.config import Settings, get_settings, setup_logging

logger = logging.getLogger(__name__)

ACTION_SHORTCUTS = {
    "check": "check_availability",
    "book": "create_reservation",
    "update": "update_reservation",
    "cancel": "cancel_reservation",
}


def parse_command(line: str) -> dict:
    """Turn one input line into an action.

    Accepts either a full JSON action ({"type": ..., "payload": {...}}) or a
    shortcut followed by a JSON payload, e.g. ``check {"date": "tomorrow",
    "time": "21:00", "party_size": 4}``.

    Raises:
        ValueError: If the line cannot be understood
    """
    line = line.strip()
    if line.startswith("{"):
        action = json.loads(line)
        if not isinstance(action, dict) or "type" not in action:
            raise ValueError('A JSON action needs a "type" field')
        return action

    keyword, _, rest = line.partition(" ")
    if keyword not in ACTION_SHORTCUTS:
        raise ValueError(f"Unknown command: {keyword}")
    payload = json.loads(rest) if rest.strip() else {}
    if not isinstance(payload, dict):
        raise ValueError("The payload must be a JSON object")
    return {"type": ACTION_SHORTCUTS[keyword], "payload": payload}


def format_response(result: dict) -> str:
    """Render an engine response for humans."""
    lines = []
    if result.get("success"):
        lines.append("✓ Success")
    else:
        kind = result.get("error") or "failure"
        lines.append(f"✗ Not done ({kind})")

    if result.get("availability"):
        lines.append(f"  availability: {result['availability']}")
    if result.get("reason"):
        lines.append(f"  reason: {result['reason']}")
    if result.get("normalized_time"):
        lines.append(f"  time adjusted to: {result['normalized_time']}")
    for alternative in result.get("alternatives") or []:
        lines.append(f"  alternative: {alternative['date']} {alternative['time']}")
    if result.get("data"):
        data = result["data"]
        lines.append(
            f"  reservation {data['id']}: {data['name']}, {data['party_size']} people, "
            f"{data['date']} {data['time']} ({data['status']})"
        )
    if result.get("message"):
        lines.append(f"  {result['message']}")
    return "\n".join(lines)


class TableKeeperCLI:
    """Interactive client that sends actions to the TableKeeper server."""

    def __init__(
        self,
        tenant: str,
        phone: str,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the CLI."""
        self.settings = settings or get_settings()
        self.tenant = tenant
        self.phone = phone
        self.client = client or httpx.Client(base_url=self.settings.server_url, timeout=30.0)
        logger.info(f"CLI for tenant {tenant} talking to {self.settings.server_url}")

    def send_action(self, action: dict) -> dict:
        """POST an action and return the decoded engine response."""
        response = self.client.post(
            f"/tenants/{self.tenant}/actions",
            json={"action": action, "phone": self.phone},
        )
        response.raise_for_status()
        return response.json()

    def fetch_stats(self) -> dict:
        response = self.client.get(f"/tenants/{self.tenant}/stats", params={"phone": self.phone})
        response.raise_for_status()
        return response.json()

    def run(self) -> None:
        """Run the CLI application."""
        print("\n" + "=" * 60)
        print(f"TABLEKEEPER - tenant {self.tenant}, caller {self.phone}")
        print("=" * 60)
        print("Examples:")
        print('  check {"date": "tomorrow", "time": "21:00", "party_size": 4}')
        print('  book {"date": "2026-11-02", "time": "20:30", "party_size": 2, "name": "Ana"}')
        print('  cancel {"reservation_id": "ab12cd34ef"}')
        print("  stats")
        print("Type 'quit' or 'exit' to end the session.\n")

        while True:
            try:
                user_input = input("\n> ").strip()

                if not user_input:
                    continue

                if user_input.lower() in ["quit", "exit", "q"]:
                    print("\nGoodbye!")
                    break

                self._process_request(user_input)

            except (KeyboardInterrupt, EOFError):
                print("\n\nExiting TableKeeper. Goodbye!")
                break

    def _process_request(self, user_input: str) -> None:
        """Process a single command line against the server API."""
        try:
            if user_input == "stats":
                stats = self.fetch_stats()
                print(f"{stats['count']} upcoming reservation(s)")
                for reservation in stats["reservations"]:
                    print(
                        f"  {reservation['id']}: {reservation['date']} {reservation['time']}, "
                        f"{reservation['party_size']} people"
                    )
                return

            result = self.send_action(parse_command(user_input))
            print(format_response(result))

        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            print(f"\n⚠ Could not understand the command: {e}")
        except httpx.HTTPStatusError as e:
            logger.warning(f"Server rejected request: {e}")
            print(f"\n⚠ Server error (status {e.response.status_code}): {e.response.text}")
        except httpx.TimeoutException:
            logger.exception("Request timed out")
            print("\n⚠ Request timed out.")
        except httpx.ConnectError:
            logger.exception("Cannot connect to server")
            print(f"\n⚠ Cannot connect to server at {self.settings.server_url}")
            print("Make sure the server is running:")
            print("  python -m tablekeeper.server")


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="TableKeeper reservation client")
    parser.add_argument("--tenant", required=True, help="Restaurant identifier")
    parser.add_argument("--phone", required=True, help="Caller phone number")
    args = parser.parse_args()

    try:
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(settings)
    TableKeeperCLI(args.tenant, args.phone, settings).run()


if __name__ == "__main__":
    main()
