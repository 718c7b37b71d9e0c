from .adapter import AdapterError, checksum_address, encode_function_call, to_base_units, to_bytes32
from .simulator import DryRunBoundary, SimulationError

__all__ = [
    "AdapterError",
    "DryRunBoundary",
    "SimulationError",
    "checksum_address",
    "encode_function_call",
    "to_base_units",
    "to_bytes32",
]
