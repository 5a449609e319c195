"""Tests for the diagnostics command line."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from classroll import __main__ as cli
from classroll.api.exceptions import ClassrollTransportError
from classroll.api.models import Group
from classroll.config import Settings


@pytest.fixture
def fake_client():
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.groups.async_check_health = AsyncMock(return_value=True)
    client.groups.async_list = AsyncMock(return_value=[Group("INF-1", "CS", id=1)])
    with patch.object(cli, "ClassrollClient", return_value=client), \
            patch.object(cli, "load_settings", return_value=Settings()):
        yield client


class TestCli:

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_stats_requires_group(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["stats"])

    def test_health_ok(self, fake_client, capsys):
        assert cli.main(["health"]) == 0
        assert "reachable" in capsys.readouterr().out

    def test_health_down(self, fake_client):
        fake_client.groups.async_check_health.return_value = False
        assert cli.main(["health"]) == 1

    def test_groups(self, fake_client, capsys):
        assert cli.main(["groups"]) == 0
        assert "INF-1 (CS)" in capsys.readouterr().out

    def test_error_exit_code(self, fake_client, capsys):
        fake_client.groups.async_list.side_effect = ClassrollTransportError("connection refused")
        assert cli.main(["groups"]) == 1
        assert "connection refused" in capsys.readouterr().out
