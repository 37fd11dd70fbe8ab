"""Tests for the command-line client."""

import json

import httpx
import pytest

from tablekeeper.cli import TableKeeperCLI, format_response, parse_command
from tablekeeper.config import Settings


class TestParseCommand:
    """Tests for parse_command."""

    def test_shortcut_with_payload(self):
        action = parse_command('check {"date": "tomorrow", "time": "21:00", "party_size": 4}')

        assert action == {
            "type": "check_availability",
            "payload": {"date": "tomorrow", "time": "21:00", "party_size": 4},
        }

    def test_shortcut_without_payload(self):
        assert parse_command("cancel") == {"type": "cancel_reservation", "payload": {}}

    def test_full_json_action(self):
        action = parse_command('{"type": "none"}')

        assert action == {"type": "none"}

    def test_json_action_without_type(self):
        with pytest.raises(ValueError, match="type"):
            parse_command('{"payload": {}}')

    def test_unknown_command(self):
        with pytest.raises(ValueError, match="Unknown command"):
            parse_command("reserve everything")

    def test_payload_must_be_object(self):
        with pytest.raises(ValueError, match="JSON object"):
            parse_command("book [1, 2]")

    def test_broken_json(self):
        with pytest.raises(ValueError):
            parse_command("book {date: tomorrow}")


class TestFormatResponse:
    """Tests for format_response."""

    def test_refusal_with_alternatives(self):
        text = format_response(
            {
                "success": True,
                "availability": "not_available",
                "reason": "capacity",
                "normalized_time": "20:30",
                "alternatives": [
                    {"date": "2026-11-02", "time": "20:00"},
                    {"date": "2026-11-02", "time": "21:00"},
                ],
            }
        )

        assert text.splitlines() == [
            "✓ Success",
            "  availability: not_available",
            "  reason: capacity",
            "  time adjusted to: 20:30",
            "  alternative: 2026-11-02 20:00",
            "  alternative: 2026-11-02 21:00",
        ]

    def test_failure_kind_and_message(self):
        text = format_response({"success": False, "error": "not_found", "message": "Reservation not found."})

        assert text == "✗ Not done (not_found)\n  Reservation not found."

    def test_reservation_summary(self):
        text = format_response(
            {
                "success": True,
                "data": {
                    "id": "ab12cd34ef",
                    "name": "Ana",
                    "party_size": 2,
                    "date": "2026-11-02",
                    "time": "20:30",
                    "status": "active",
                },
            }
        )

        assert "reservation ab12cd34ef: Ana, 2 people, 2026-11-02 20:30 (active)" in text


class TestTableKeeperCLI:
    """Tests for the HTTP side of the client."""

    @pytest.fixture
    def requests(self):
        return []

    @pytest.fixture
    def cli(self, requests):
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.endswith("/stats"):
                return httpx.Response(
                    200,
                    json={
                        "count": 1,
                        "has_active": True,
                        "reservations": [
                            {"id": "r1", "date": "2026-11-02", "time": "20:30", "party_size": 2}
                        ],
                    },
                )
            return httpx.Response(200, json={"success": True, "alternatives": []})

        settings = Settings(server_url="http://testserver")
        client = httpx.Client(base_url=settings.server_url, transport=httpx.MockTransport(handler))
        return TableKeeperCLI("resto-1", "+34600000000", settings=settings, client=client)

    def test_send_action(self, cli, requests):
        result = cli.send_action({"type": "none", "payload": {}})

        assert result["success"] is True
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/tenants/resto-1/actions"
        assert json.loads(requests[0].content) == {
            "action": {"type": "none", "payload": {}},
            "phone": "+34600000000",
        }

    def test_fetch_stats(self, cli, requests):
        stats = cli.fetch_stats()

        assert stats["count"] == 1
        assert requests[0].url.params["phone"] == "+34600000000"

    def test_process_request_prints_result(self, cli, capsys):
        cli._process_request('cancel {"reservation_id": "r1"}')

        assert "✓ Success" in capsys.readouterr().out

    def test_process_request_reports_bad_input(self, cli, requests, capsys):
        cli._process_request("dance")

        assert "Could not understand the command" in capsys.readouterr().out
        assert requests == []

    def test_process_request_stats(self, cli, capsys):
        cli._process_request("stats")

        out = capsys.readouterr().out
        assert "1 upcoming reservation(s)" in out
        assert "r1: 2026-11-02 20:30, 2 people" in out

    def test_server_error_is_reported(self, capsys):
        settings = Settings(server_url="http://testserver")
        client = httpx.Client(
            base_url=settings.server_url,
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
        )
        cli = TableKeeperCLI("resto-1", "+34600000000", settings=settings, client=client)

        cli._process_request('{"type": "none"}')

        assert "Server error (status 500): boom" in capsys.readouterr().out
