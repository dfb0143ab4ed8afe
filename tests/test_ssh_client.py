"""Tests for the SSH client.

The live tests require a configured .env file with valid SSH credentials
(CLUSTERBAR_SSH_HOST, CLUSTERBAR_SSH_USER, ...).
Run with: pytest tests/test_ssh_client.py -v --run-live
"""

from types import SimpleNamespace

import pytest

from clusterbar.config import ClusterConfig, settings_from_env
from clusterbar.models import CommandResult
from clusterbar.monitor import ClusterMonitor
from clusterbar.slurm_commands import SlurmCommands
from clusterbar.ssh_client import SSHClient, SSHCommandError, SSHConnectionError, TransportError


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings():
    """Get settings from environment."""
    return settings_from_env()


@pytest.fixture
async def ssh_client(settings):
    """Create and connect SSH client."""
    client = SSHClient(settings)
    await client.connect()
    yield client
    await client.disconnect()


# =============================================================================
# Test: offline behaviour
# =============================================================================

class TestErrors:
    """Tests that need no cluster."""

    def test_error_hierarchy(self):
        assert issubclass(SSHConnectionError, TransportError)
        assert issubclass(SSHCommandError, TransportError)

    def test_command_error_attributes(self):
        error = SSHCommandError("failed", command="sinfo", return_code=3)

        assert error.command == "sinfo"
        assert error.return_code == 3
        assert str(error) == "failed"

    def test_not_connected_initially(self):
        client = SSHClient(ClusterConfig(ssh_host="login.example.com", ssh_user="alice"))
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_connection_failure_raises_transport_error(self):
        config = ClusterConfig(ssh_host="127.0.0.1", ssh_port=1, ssh_user="nobody", command_timeout=5)
        client = SSHClient(config)

        with pytest.raises(TransportError):
            await client.run("true")


class FakeConnection:
    """Stands in for an open asyncssh connection."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def is_closed(self):
        return False

    async def run(self, command, check=False):
        if self.error is not None:
            raise self.error
        return self.result


def connected_client(connection) -> SSHClient:
    client = SSHClient(ClusterConfig(ssh_host="login.example.com", ssh_user="alice"))
    client._connection = connection
    return client


class TestExecute:
    """Tests for command execution over an already open connection."""

    @pytest.mark.asyncio
    async def test_missing_exit_status_is_failure(self):
        result = SimpleNamespace(exit_status=None, stdout="partial", stderr="")
        client = connected_client(FakeConnection(result=result))

        command_result = await client.execute("sinfo")
        assert not command_result.success

        with pytest.raises(TransportError):
            await client.run("sinfo")

    @pytest.mark.asyncio
    async def test_zero_exit_status_returns_stdout(self):
        result = SimpleNamespace(exit_status=0, stdout="node01 idle debug\n", stderr="")
        client = connected_client(FakeConnection(result=result))

        assert await client.run("sinfo") == "node01 idle debug\n"

    @pytest.mark.asyncio
    async def test_channel_os_error_is_wrapped(self):
        client = connected_client(FakeConnection(error=OSError("connection reset")))

        with pytest.raises(SSHCommandError) as exc_info:
            await client.run("sinfo")

        assert exc_info.value.command == "sinfo"
        assert not client.is_connected


# =============================================================================
# Test: live cluster
# =============================================================================

@pytest.mark.live
class TestLiveCluster:
    """Tests against the configured cluster."""

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self, settings):
        client = SSHClient(settings)

        assert not client.is_connected
        await client.connect()
        assert client.is_connected
        await client.disconnect()
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_execute_simple_command(self, ssh_client):
        result = await ssh_client.execute("echo 'Hello World'")

        assert isinstance(result, CommandResult)
        assert result.success
        assert "Hello World" in result.stdout

    @pytest.mark.asyncio
    async def test_run_raises_on_exit_code(self, ssh_client):
        with pytest.raises(SSHCommandError) as exc_info:
            await ssh_client.run("exit 42")

        assert exc_info.value.return_code == 42

    @pytest.mark.asyncio
    async def test_refresh(self, ssh_client, settings):
        monitor = ClusterMonitor(SlurmCommands(ssh_client, settings), user=settings.ssh_user)

        snapshot = await monitor.refresh()

        assert len(snapshot.nodes) > 0
        assert all(n.name for n in snapshot.nodes)
        ids = [j.numeric_id for j in snapshot.jobs]
        assert ids == sorted(ids, reverse=True)
