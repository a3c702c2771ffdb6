"""
Exceptions raised by the ReversePing agent.
"""
from typing import Optional


class ReversePingError(Exception):
    """Base class for all agent errors."""
    pass

class SetupError(ReversePingError):
    """A scan phase could not be set up. Aborts the run."""
    pass

class NoInterfaceFound(SetupError):
    """Raised when no local interface carries the outbound address."""
    def __init__(self, message: str = "No network interface found", address: Optional[str] = None):
        super().__init__(message)
        self.address = address

class InvalidSubnetError(SetupError):
    """Raised when an address/netmask pair does not describe a network."""
    def __init__(self, address: str, netmask: str, reason: str = ""):
        super().__init__(f"invalid ip address found: {address}/{netmask} {reason}".strip())
        self.address = address
        self.netmask = netmask

class ResolverSessionError(SetupError):
    """Raised when the reverse lookup session to a host cannot be opened."""
    def __init__(self, address: str, reason: str):
        super().__init__(f"dns session to {address} failed: {reason}")
        self.address = address

class PrivilegeError(SetupError):
    """Raised when the process lacks the privileges raw-socket scanning needs."""
    def __init__(self, message: str = "Root access needed to scan devices"):
        super().__init__(message)

class AgentNotConfigured(ReversePingError):
    """Raised when no saved agent configuration exists."""
    def __init__(self, message: str = "Agent not configured"):
        super().__init__(message)

class DaemonError(ReversePingError):
    """Raised when the background service cannot be installed or removed."""
    pass

class TransmitError(ReversePingError):
    """Raised when the report could not be delivered to the collector."""
    pass

class ServerError(TransmitError):
    """Raised when the collector answers with a non-success status."""
    def __init__(self, error: str, status: Optional[int] = None):
        super().__init__(f"server transmit failed: API Error: {error}")
        self.error = error
        self.status = status
