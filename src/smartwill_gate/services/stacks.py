# src/smartwill_gate/services/stacks.py
"""Stacks wallet primitives: address rules, address derivation and message signatures."""

from __future__ import annotations

import hashlib
import re
from enum import StrEnum

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, encode_dss_signature

C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ADDRESS_LENGTH = 41
SIGNATURE_LENGTH_BYTES = 65
CHECKSUM_LENGTH_BYTES = 4

SIGNED_MESSAGE_PREFIX = b"\x17Stacks Signed Message:\n"
LEGACY_MESSAGE_PREFIX = b"\x18Stacks Message Signing:\n"

# Body after the two-letter prefix: base58-like, allows 0 but not O, I or l.
_ADDRESS_BODY = re.compile(r"[0-9A-HJ-NP-Za-km-z]{39}")


class StacksNetwork(StrEnum):
    """Networks a single-signature Stacks address can belong to."""

    MAINNET = "mainnet"
    TESTNET = "testnet"


_ADDRESS_PREFIXES: dict[str, StacksNetwork] = {
    "SP": StacksNetwork.MAINNET,
    "ST": StacksNetwork.TESTNET,
}
_SINGLE_SIG_VERSIONS: dict[StacksNetwork, int] = {
    StacksNetwork.MAINNET: 22,
    StacksNetwork.TESTNET: 26,
}


def is_valid_stacks_address(address: object) -> bool:
    """Return True if ``address`` is syntactically a single-sig Stacks address.

    The rule is fixed-prefix (``SP`` or ``ST``), fixed-length (41 characters)
    and a restricted alphabet for the remaining 39 characters.
    """
    if not isinstance(address, str) or not address:
        return False
    if address[:2] not in _ADDRESS_PREFIXES:
        return False
    if len(address) != ADDRESS_LENGTH:
        return False
    return _ADDRESS_BODY.fullmatch(address[2:]) is not None


def network_for_address(address: str) -> StacksNetwork:
    """Return the network implied by the address prefix."""
    try:
        return _ADDRESS_PREFIXES[address[:2]]
    except KeyError as err:
        raise ValueError(f"Unknown Stacks address prefix: {address[:2]!r}") from err


def hash160(data: bytes) -> bytes:
    """Return RIPEMD-160(SHA-256(data))."""
    ripemd = hashlib.new("ripemd160")
    ripemd.update(hashlib.sha256(data).digest())
    return ripemd.digest()


def c32_encode(data: bytes) -> str:
    """Encode ``data`` with the Crockford-style c32 alphabet.

    Leading zero bytes are preserved as one ``0`` character each.
    """
    value = int.from_bytes(data, "big")
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 32)
        digits.append(C32_ALPHABET[remainder])
    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    return "0" * leading_zeros + "".join(reversed(digits))


def c32check_encode(version: int, data: bytes) -> str:
    """Encode ``data`` under ``version`` with a double-SHA-256 checksum."""
    if not 0 <= version < len(C32_ALPHABET):
        raise ValueError("c32check version must be between 0 and 31")
    versioned = bytes([version]) + data
    checksum = hashlib.sha256(hashlib.sha256(versioned).digest()).digest()[:CHECKSUM_LENGTH_BYTES]
    return C32_ALPHABET[version] + c32_encode(data + checksum)


def _load_public_key(public_key_hex: str) -> ec.EllipticCurvePublicKey:
    try:
        key_bytes = bytes.fromhex(public_key_hex)
    except ValueError as err:
        raise ValueError(f"Invalid public key hex: {err}") from err
    return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), key_bytes)


def derive_stacks_address(public_key_hex: str, network: StacksNetwork) -> str:
    """Return the canonical single-sig address controlled by ``public_key_hex``.

    Args:
        public_key_hex: SEC1-encoded secp256k1 public key (compressed or not), hex.
        network: Network whose address version should be used.

    Raises:
        ValueError: If the key is not a valid secp256k1 point.
    """
    _load_public_key(public_key_hex)
    key_bytes = bytes.fromhex(public_key_hex)
    return "S" + c32check_encode(_SINGLE_SIG_VERSIONS[network], hash160(key_bytes))


def encode_varint(value: int) -> bytes:
    """Encode ``value`` as a Bitcoin-style compact size integer."""
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def hash_message(message: str, prefix: bytes = SIGNED_MESSAGE_PREFIX) -> bytes:
    """Return the SHA-256 digest a Stacks wallet signs for ``message``."""
    encoded = message.encode("utf-8")
    return hashlib.sha256(prefix + encode_varint(len(encoded)) + encoded).digest()


def verify_message_signature(message: str, signature: str, public_key: str) -> bool:
    """Verify a Stacks wallet message signature.

    Decoding is strict: ``signature`` must be plain hex of a 65 byte
    ``v || r || s`` recoverable signature. Callers that receive other
    framings try them before calling this function.

    Returns:
        True if the signature matches under the current or legacy message prefix.

    Raises:
        ValueError: If the signature or public key cannot be decoded.
    """
    signature_bytes = bytes.fromhex(signature)
    if len(signature_bytes) != SIGNATURE_LENGTH_BYTES:
        raise ValueError(f"Stacks signatures must be {SIGNATURE_LENGTH_BYTES} bytes")

    r = int.from_bytes(signature_bytes[1:33], "big")
    s = int.from_bytes(signature_bytes[33:], "big")
    der_signature = encode_dss_signature(r, s)
    verify_key = _load_public_key(public_key)

    for prefix in (SIGNED_MESSAGE_PREFIX, LEGACY_MESSAGE_PREFIX):
        try:
            verify_key.verify(
                der_signature,
                hash_message(message, prefix),
                ec.ECDSA(Prehashed(hashes.SHA256())),
            )
            return True
        except InvalidSignature:
            continue
    return False
