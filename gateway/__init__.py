"""Gateway router client - route decoding, pre-flight guards and execution."""

from gateway.codec import decode_route
from gateway.errors import DomainError, ErrorKind
from gateway.execution import ExecutionOrchestrator, create_orchestrator
from gateway.guards import validate_before_execution

__version__ = "0.1.0"
__all__ = [
    "DomainError",
    "ErrorKind",
    "ExecutionOrchestrator",
    "create_orchestrator",
    "decode_route",
    "validate_before_execution",
    "__version__",
]
