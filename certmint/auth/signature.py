"""Ed25519 wallet signature verification.

A wallet proves control of its keypair by signing an arbitrary message.
Public keys travel base58-encoded (Solana style). Signatures are base58 too,
though some wallets hand back base64; a signature containing characters
outside the base58 alphabet is decoded as base64 instead.

Note: pysodium is imported lazily inside verify_wallet_signature so that
modules depending on this one import cleanly where libsodium is absent.
"""

import base64
import binascii
import logging

import base58

log = logging.getLogger(__name__)

SIGNATURE_LENGTH = 64
PUBLIC_KEY_LENGTH = 32

BASE58_ALPHABET = frozenset(base58.BITCOIN_ALPHABET.decode("ascii"))


def decode_signature(signature: bytes | str) -> bytes:
    """Decode a detached signature from its wire encoding.

    Raw bytes pass through untouched. Strings are base58 unless they contain
    a character illegal in base58 (e.g. ``+``, ``/``, ``=``), in which case
    they are treated as standard base64.

    Raises:
        ValueError: If the string is not valid in the selected encoding.
    """
    if isinstance(signature, (bytes, bytearray)):
        return bytes(signature)

    text = signature.strip()
    if text and set(text) <= BASE58_ALPHABET:
        return base58.b58decode(text)

    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as e:
        raise ValueError(f"signature is neither base58 nor base64: {e}") from e


def decode_public_key(public_key: str) -> bytes:
    """Decode a base58 wallet public key.

    Raises:
        ValueError: If the key is not valid base58.
    """
    return base58.b58decode(public_key.strip())


def verify_wallet_signature(
    message: bytes | str,
    signature: bytes | str,
    public_key: str,
) -> bool:
    """Verify a detached Ed25519 signature made by a wallet.

    Never raises: any decoding problem, wrong key/signature length or
    cryptographic mismatch yields False.

    Args:
        message: The signed message (str is encoded as UTF-8)
        signature: Raw signature bytes, or base58/base64 string
        public_key: Base58-encoded 32-byte Ed25519 public key

    Returns:
        True if the signature is valid for message under public_key
    """
    message_bytes = message.encode("utf-8") if isinstance(message, str) else bytes(message)

    try:
        signature_bytes = decode_signature(signature)
        key_bytes = decode_public_key(public_key)
    except (ValueError, TypeError, AttributeError) as e:
        log.debug(f"Signature decoding failed: {e}")
        return False

    if len(signature_bytes) != SIGNATURE_LENGTH:
        log.debug(f"Rejecting signature of length {len(signature_bytes)}")
        return False
    if len(key_bytes) != PUBLIC_KEY_LENGTH:
        log.debug(f"Rejecting public key of length {len(key_bytes)}")
        return False

    import pysodium
    try:
        # pysodium.crypto_sign_verify_detached raises ValueError if invalid
        pysodium.crypto_sign_verify_detached(signature_bytes, message_bytes, key_bytes)
    except Exception:
        log.debug(f"Ed25519 verification failed for wallet {public_key[:8]}...")
        return False

    return True
