"""Address, selector and label helpers."""

import re

from eth_utils import function_signature_to_4byte_selector, is_hex_address, to_checksum_address

from .constants import SECONDS_PER_DAY, ZERO_ADDRESS

_TUPLE_PREFIX = re.compile(r"\btuple\(")


def normalize_address(address: str) -> str:
    """Normalize an Ethereum address to its EIP-55 checksummed form.

    Args:
        address: Address with or without 0x prefix.

    Returns:
        Checksummed address.

    Raises:
        ValueError: If the address is not 20 bytes of hex.
    """
    addr = address if address.startswith("0x") else "0x" + address
    if not is_hex_address(addr):
        raise ValueError(f"Invalid address: {address}")
    return to_checksum_address(addr)


def is_zero_address(address: str | None) -> bool:
    return address is None or int(address, 16) == 0


def same_address(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return a is b
    return a.lower() == b.lower()


def canonical_signature(signature: str) -> str:
    """Strip whitespace and ethers' ``tuple(...)`` spelling from a signature."""
    signature = signature.strip()
    if signature.startswith("function "):
        signature = signature[len("function ") :]
    signature = re.sub(r"\s+", "", signature)
    return _TUPLE_PREFIX.sub("(", signature)


def selector_of(signature: str) -> str:
    """Compute the 4-byte function selector of a canonical signature.

    Args:
        signature: Function signature, e.g. ``"transferOwnership(address)"``.

    Returns:
        0x-prefixed lowercase hex selector, e.g. ``"0xf2fde38b"``.
    """
    return "0x" + function_signature_to_4byte_selector(canonical_signature(signature)).hex()


def normalize_selector(selector: str | bytes) -> str:
    """Normalize a selector given as bytes or hex string.

    Raises:
        ValueError: If the value is not exactly 4 bytes.
    """
    if isinstance(selector, (bytes, bytearray)):
        raw = bytes(selector)
    else:
        try:
            raw = bytes.fromhex(selector.removeprefix("0x"))
        except ValueError as e:
            raise ValueError(f"Invalid selector: {selector}") from e
    if len(raw) != 4:
        raise ValueError(f"Selector must be 4 bytes, got {len(raw)}")
    return "0x" + raw.hex()


def is_selector(value: str | bytes) -> bool:
    try:
        normalize_selector(value)
        return True
    except ValueError:
        return False


def format_bytes32(text: str) -> bytes:
    """Encode a short string as a bytes32 label (null padded).

    Raises:
        ValueError: If the UTF-8 encoding is longer than 31 bytes.
    """
    data = text.encode("utf-8")
    if len(data) > 31:
        raise ValueError("bytes32 string must be less than 32 bytes")
    return data.ljust(32, b"\x00")


def parse_bytes32(data: bytes) -> str:
    """Decode a bytes32 label produced by :func:`format_bytes32`."""
    if len(data) != 32:
        raise ValueError(f"Invalid bytes32 length: {len(data)}")
    return data.rstrip(b"\x00").decode("utf-8")


def days(n: int) -> int:
    """Number of seconds in ``n`` days."""
    return n * SECONDS_PER_DAY


__all__ = [
    "ZERO_ADDRESS",
    "normalize_address",
    "is_zero_address",
    "same_address",
    "canonical_signature",
    "selector_of",
    "normalize_selector",
    "is_selector",
    "format_bytes32",
    "parse_bytes32",
    "days",
]
