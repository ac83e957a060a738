"""
Ed25519 signer for rollup transactions.
"""
from typing import Sequence, Union
from solders.keypair import Keypair


class Ed25519Signer:
    """Signs rollup transactions with a 32-byte Ed25519 private key."""

    def __init__(self, private_key: Union[bytes, Sequence[int]]) -> None:
        private_key = bytes(private_key)
        if len(private_key) != 32:
            raise ValueError(
                f"Ed25519 private key must be 32 bytes, got {len(private_key)}"
            )
        self._keypair = Keypair.from_seed(private_key)

    @classmethod
    def generate(cls) -> "Ed25519Signer":
        return cls(Keypair().secret())

    @classmethod
    def from_hex(cls, private_key_hex: str) -> "Ed25519Signer":
        if private_key_hex.lower().startswith("0x"):
            private_key_hex = private_key_hex[2:]
        return cls(bytes.fromhex(private_key_hex))

    @property
    def public_key(self) -> bytes:
        return bytes(self._keypair.pubkey())

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def sign(self, message: bytes) -> bytes:
        return bytes(self._keypair.sign_message(message))

    def __repr__(self) -> str:
        return f"Ed25519Signer(public_key={self.public_key_hex})"
