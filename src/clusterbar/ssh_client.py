"""SSH client for running Slurm commands on a remote login node."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol

import asyncssh

from clusterbar.config import ClusterConfig
from clusterbar.models import CommandResult

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when a remote command could not be run successfully."""
    pass


class SSHConnectionError(TransportError):
    """Raised when SSH connection fails."""
    pass


class SSHCommandError(TransportError):
    """Raised when SSH command execution fails.

    Attributes:
        command: The command line that failed.
        return_code: Remote exit status, or None if the command never finished.
    """

    def __init__(self, message: str, command: str = "", return_code: Optional[int] = None):
        super().__init__(message)
        self.command = command
        self.return_code = return_code


class RemoteExecutor(Protocol):
    """Anything that can run a shell command remotely and return its stdout."""

    async def run(self, command: str) -> str:
        """Run ``command`` and return stdout, raising TransportError on failure."""
        ...


class SSHClient:
    """Manages the SSH connection to the Slurm login node.

    This client handles connection lifecycle and command execution over SSH
    using asyncssh. One connection is shared; concurrent commands run on
    separate channels.
    """

    def __init__(self, settings: ClusterConfig):
        """Initialize SSH client with settings.

        Args:
            settings: Configuration settings containing SSH connection details.
        """
        self.settings = settings
        self._connection: Optional[asyncssh.SSHClientConnection] = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Check if currently connected."""
        return self._connection is not None and not self._connection.is_closed()

    async def connect(self) -> None:
        """Establish SSH connection to the remote host.

        Raises:
            SSHConnectionError: If connection fails.
        """
        async with self._lock:
            if self.is_connected:
                return

            try:
                connect_kwargs: dict = {
                    "host": self.settings.ssh_host,
                    "port": self.settings.ssh_port,
                    "username": self.settings.ssh_user,
                }

                # Handle SSH key authentication
                key_path = self.settings.ssh_key_path_resolved
                if key_path:
                    if key_path.exists():
                        connect_kwargs["client_keys"] = [str(key_path)]
                        if self.settings.ssh_password:
                            # Password is passphrase for the key
                            connect_kwargs["passphrase"] = self.settings.ssh_password
                    else:
                        logger.warning(f"SSH key not found at {key_path}, falling back to other auth methods")

                if self.settings.ssh_password and "client_keys" not in connect_kwargs:
                    connect_kwargs["password"] = self.settings.ssh_password

                if self.settings.ssh_known_hosts:
                    known_hosts_path = Path(self.settings.ssh_known_hosts).expanduser()
                    if known_hosts_path.exists():
                        connect_kwargs["known_hosts"] = str(known_hosts_path)
                    else:
                        logger.warning(f"Known hosts file not found at {known_hosts_path}")
                        connect_kwargs["known_hosts"] = None
                else:
                    connect_kwargs["known_hosts"] = None

                logger.info(f"Connecting to {self.settings.ssh_user}@{self.settings.ssh_host}:{self.settings.ssh_port}")
                self._connection = await asyncio.wait_for(
                    asyncssh.connect(**connect_kwargs),
                    timeout=self.settings.command_timeout,
                )
                logger.info("SSH connection established successfully")

            except asyncio.TimeoutError as e:
                raise SSHConnectionError(
                    f"Timed out connecting to {self.settings.ssh_host} after {self.settings.command_timeout} seconds"
                ) from e
            except (asyncssh.Error, OSError) as e:
                raise SSHConnectionError(f"Failed to connect to {self.settings.ssh_host}: {e}") from e

    async def disconnect(self) -> None:
        """Close the SSH connection."""
        async with self._lock:
            if self._connection:
                self._connection.close()
                await self._connection.wait_closed()
                self._connection = None
                logger.info("SSH connection closed")

    async def ensure_connected(self) -> None:
        """Ensure connection is established, reconnecting if necessary."""
        if not self.is_connected:
            await self.connect()

    async def execute(
        self,
        command: str,
        timeout: Optional[float] = None,
        check: bool = False,
    ) -> CommandResult:
        """Execute a command on the remote host.

        Args:
            command: The command to execute.
            timeout: Command timeout in seconds (uses settings default if not specified).
            check: If True, raise exception on non-zero return code.

        Returns:
            CommandResult with stdout, stderr, and return code.

        Raises:
            SSHConnectionError: If not connected and cannot connect.
            SSHCommandError: If the command times out, the channel fails, or
                check=True and the command returns non-zero.
        """
        await self.ensure_connected()

        if timeout is None:
            timeout = self.settings.command_timeout

        try:
            logger.debug(f"Executing command: {command[:100]}...")

            result = await asyncio.wait_for(
                self._connection.run(command, check=False),
                timeout=timeout
            )

            cmd_result = CommandResult(
                stdout=result.stdout or "",
                stderr=result.stderr or "",
                return_code=result.exit_status if result.exit_status is not None else -1,
            )

            logger.debug(f"Command completed with return code {cmd_result.return_code}")

            if check and not cmd_result.success:
                raise SSHCommandError(
                    f"Command failed with return code {cmd_result.return_code}: {cmd_result.stderr.strip()}",
                    command=command,
                    return_code=cmd_result.return_code,
                )

            return cmd_result

        except asyncio.TimeoutError as e:
            raise SSHCommandError(
                f"Command timed out after {timeout} seconds: {command[:50]}...",
                command=command,
            ) from e
        except asyncssh.Error as e:
            # Connection might be broken, clear it
            self._connection = None
            raise SSHCommandError(f"SSH error executing command: {e}", command=command) from e
        except OSError as e:
            self._connection = None
            raise SSHCommandError(f"Channel error executing command: {e}", command=command) from e

    async def run(self, command: str) -> str:
        """Run a command and return its stdout.

        Raises:
            TransportError: On connection failure, timeout, channel failure, or non-zero or missing exit status.
        """
        result = await self.execute(command, check=True)
        return result.stdout

    async def __aenter__(self) -> "SSHClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()
