"""Encode agent operations as ABI calldata for the execution proxy."""

from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import function_signature_to_4byte_selector, is_address, keccak, to_checksum_address

from agent_engine.errors import IntentValidationError


class AdapterError(IntentValidationError):
    """Raised when call arguments cannot be encoded for the execution proxy."""


def encode_function_call(name: str, arg_types: Sequence[str], args: Sequence[Any]) -> str:
    signature = f"{name}({','.join(arg_types)})"
    selector = function_signature_to_4byte_selector(signature)
    try:
        payload = encode(list(arg_types), list(args))
    except (EncodingError, TypeError, ValueError) as exc:
        raise AdapterError(f"Cannot encode {name}: {exc}") from exc
    return _to_hex(selector + payload)


def checksum_address(value: str) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise AdapterError(f"Invalid address: {value}")
    return to_checksum_address(value)


def to_bytes32(value: str) -> bytes:
    """Hex strings of 32 bytes pass through, short text is right-padded, long text is hashed."""

    if value.startswith("0x") and len(value) == 66:
        try:
            return bytes.fromhex(value[2:])
        except ValueError:
            pass
    raw = value.encode("utf-8")
    if len(raw) <= 32:
        return raw.ljust(32, b"\x00")
    return keccak(text=value)


def to_base_units(amount: float, decimals: int = 18) -> int:
    try:
        units = Decimal(str(amount)) * (Decimal(10) ** decimals)
    except InvalidOperation as exc:
        raise AdapterError(f"Invalid amount: {amount}") from exc
    if not units.is_finite():
        raise AdapterError(f"Invalid amount: {amount}")
    if units < 0:
        raise AdapterError("Amount must be non-negative.")
    return int(units)


def _to_hex(data: bytes) -> str:
    return "0x" + data.hex()
