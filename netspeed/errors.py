"""Exception hierarchy for the measurement library."""

import asyncio

import aiohttp

# Failures of a single request that a caller may treat as transient.
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


class SpeedtestException(Exception):
    """Base exception for this package"""


class ProtocolMismatchError(SpeedtestException):
    """A server answered the latency probe with unexpected content"""


class TransferError(SpeedtestException):
    """A transfer unit failed and aborted its throughput batch"""


class InitializationError(SpeedtestException):
    """The client could not load its settings or rank its servers"""


class ConfigRetrievalError(InitializationError):
    """Could not retrieve speedtest-config.php"""


class SpeedtestConfigError(InitializationError):
    """Configuration XML is invalid"""


class ServersRetrievalError(InitializationError):
    """Could not retrieve the server list"""


class SpeedtestServersError(InitializationError):
    """Server list XML is invalid"""


class NoMatchedServers(InitializationError):
    """No servers matched the default country"""
