"""Shared pytest fixtures and configuration.

This module provides common fixtures used across all test modules.
"""

import asyncio
from typing import Optional, Union

import pytest
from dotenv import load_dotenv

# Load .env file at module import time
load_dotenv()


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that connect to the configured cluster over SSH",
    )


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "live: mark test as needing a real cluster (SSH credentials in .env)",
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection based on options."""
    if config.getoption("--run-live"):
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# =============================================================================
# Sample Scheduler Output
# =============================================================================

SINFO_OUTPUT = """\
node[01-03] idle debug
node[04-05],gpu7 mixed gpu
node06 drained* debug
"""

SQUEUE_OUTPUT = """\
42|bob|train|R|01:00:00|gpu|node04
43|alice|prep|PD|00:00:00|debug|
"""

SACCT_OUTPUT = """\
42|bob|train|COMPLETED|00:05:00
40|alice|eval|FAILED|00:10:00
41|carol|noop|CANCELLED by 1001|00:00:00
"""


# =============================================================================
# Fake Remote Executor
# =============================================================================

class FakeExecutor:
    """In-memory RemoteExecutor.

    ``responses`` maps a command prefix to either the stdout to return or an
    exception to raise. ``delay`` makes every call yield to the event loop
    for that many seconds.
    """

    def __init__(self, responses: Optional[dict[str, Union[str, Exception]]] = None, delay: float = 0.0):
        self.responses = dict(responses or {})
        self.delay = delay
        self.commands: list[str] = []

    def set(self, prefix: str, response: Union[str, Exception]) -> None:
        self.responses[prefix] = response

    async def run(self, command: str) -> str:
        self.commands.append(command)
        if self.delay:
            await asyncio.sleep(self.delay)
        for prefix, response in self.responses.items():
            if command.startswith(prefix):
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"Unexpected command: {command}")


@pytest.fixture
def executor():
    """Executor answering sinfo and squeue/sacct with the sample output."""
    return FakeExecutor({
        "sinfo": SINFO_OUTPUT,
        "squeue": SQUEUE_OUTPUT + SACCT_OUTPUT,
    })


@pytest.fixture
def cluster_config():
    """A ClusterConfig that is never used to open a connection."""
    from clusterbar.config import ClusterConfig

    return ClusterConfig(
        name="test",
        ssh_host="login.example.com",
        ssh_user="alice",
        refresh_interval=0.01,
    )


@pytest.fixture
def slurm(executor, cluster_config):
    """Slurm commands wrapper over the fake executor."""
    from clusterbar.slurm_commands import SlurmCommands
    return SlurmCommands(executor, cluster_config)


@pytest.fixture
def monitor(slurm):
    """Cluster monitor over the fake executor."""
    from clusterbar.monitor import ClusterMonitor
    return ClusterMonitor(slurm, user="alice")
