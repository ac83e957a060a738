"""
Warp core: warp route token model and transfer transaction builder.

A warp core config lists one token per chain of a route. Tokens point at each
other through connection strings of the form
``protocol|chainName|addressOrDenom``, where ``addressOrDenom`` is normally
the warp route id on that chain.
"""
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import base58
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from constants import MAX_U128, SEALEVEL_SPL_NOOP_ADDRESS
from logger_config import get_logger
from services.hyperlane_register_service import (
    dispatch_authority_pda,
    dispatched_message_pda,
    mailbox_outbox_pda,
    to_pubkey,
)

logger = get_logger(__name__)

# Prefix of every hyperlane token program instruction
PROGRAM_INSTRUCTION_DISCRIMINATOR = bytes([1] * 8)
TRANSFER_REMOTE_INSTRUCTION = 1


class ProtocolType(str, Enum):
    SEALEVEL = "sealevel"
    SOVEREIGN = "sovereign"


class TokenStandard(str, Enum):
    SEALEVEL_HYP_NATIVE = "SealevelHypNative"
    SOV_HYP_SYNTHETIC = "SovHypSynthetic"


def address_to_bytes32(address: str) -> bytes:
    """
    Convert a chain address into a 32-byte Hyperlane recipient.

    Hex addresses are left-padded (so 20-byte EVM addresses fit); anything
    else is decoded as base58 and must already be 32 bytes.
    """
    text = address.strip()
    if text.lower().startswith("0x"):
        raw = bytes.fromhex(text[2:])
    else:
        try:
            raw = base58.b58decode(text)
        except ValueError as e:
            raise ValueError(f"Address {address} is neither hex nor base58") from e
    if len(raw) > 32:
        raise ValueError(f"Address {address} is longer than 32 bytes")
    if not text.lower().startswith("0x") and len(raw) != 32:
        raise ValueError(f"Base58 address {address} must decode to 32 bytes")
    return raw.rjust(32, b"\0")


def _normalize_address(address: str) -> str:
    return address.lower() if address.lower().startswith("0x") else address


@dataclass
class ChainMetadata:
    """Subset of Hyperlane chain metadata the warp core needs."""

    name: str
    domain_id: int
    protocol: ProtocolType
    chain_id: Optional[int] = None
    rpc_urls: List[str] = field(default_factory=list)
    mailbox: Optional[str] = None

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ChainMetadata":
        if "domainId" not in data:
            raise ValueError(f"Chain {name} metadata is missing domainId")
        try:
            protocol = ProtocolType(data.get("protocol", "").lower())
        except ValueError:
            raise ValueError(
                f"Chain {name} has unsupported protocol {data.get('protocol')!r}"
            ) from None
        return cls(
            name=data.get("name", name),
            domain_id=int(data["domainId"]),
            protocol=protocol,
            chain_id=data.get("chainId"),
            rpc_urls=[url["http"] for url in data.get("rpcUrls", [])],
            mailbox=data.get("mailbox"),
        )


@dataclass(frozen=True)
class TokenConnection:
    protocol: ProtocolType
    chain_name: str
    address: str

    @classmethod
    def parse(cls, token: str) -> "TokenConnection":
        parts = token.split("|")
        if len(parts) != 3 or not all(parts):
            raise ValueError(
                f"Connection {token!r} must look like protocol|chainName|addressOrDenom"
            )
        try:
            protocol = ProtocolType(parts[0])
        except ValueError:
            raise ValueError(f"Connection {token!r} has unsupported protocol") from None
        return cls(protocol=protocol, chain_name=parts[1], address=parts[2])


@dataclass
class WarpToken:
    chain_name: str
    standard: str
    address_or_denom: str
    decimals: int
    symbol: str
    name: str
    collateral_address_or_denom: Optional[str] = None
    connections: List[TokenConnection] = field(default_factory=list)
    igp: Optional[Dict[str, str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WarpToken":
        return cls(
            chain_name=data["chainName"],
            standard=data["standard"],
            address_or_denom=data["addressOrDenom"],
            decimals=int(data["decimals"]),
            symbol=data["symbol"],
            name=data["name"],
            collateral_address_or_denom=data.get("collateralAddressOrDenom"),
            connections=[
                TokenConnection.parse(conn["token"]) for conn in data.get("connections", [])
            ],
            igp=data.get("igp"),
        )

    def amount(self, amount: int) -> "TokenAmount":
        return TokenAmount(token=self, amount=amount)

    def connection_to(self, chain_name: str) -> Optional[TokenConnection]:
        for connection in self.connections:
            if connection.chain_name == chain_name:
                return connection
        return None


@dataclass
class TokenAmount:
    """An amount in the token's base units."""

    token: WarpToken
    amount: int

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"Token amount must be an integer, got {self.amount!r}")
        if self.amount < 0:
            raise ValueError(f"Token amount must not be negative, got {self.amount}")


@dataclass
class WarpTypedTransaction:
    """
    A transaction produced by the warp core.

    ``transaction`` is a list of Solana instructions for sealevel origins and a
    rollup runtime call for sovereign origins. ``signers`` holds keypairs the
    builder created, which must sign alongside the sender.
    """

    category: str
    protocol: ProtocolType
    transaction: Union[List[Instruction], Dict[str, Any]]
    signers: List[Keypair] = field(default_factory=list)


class WarpCore:
    """Tokens of one warp route and the chains they live on."""

    def __init__(self, chain_metadata: Dict[str, ChainMetadata], tokens: List[WarpToken]) -> None:
        self.chain_metadata = chain_metadata
        self.tokens = tokens
        for token in tokens:
            if token.chain_name not in chain_metadata:
                raise ValueError(f"Token {token.symbol} references unknown chain {token.chain_name}")

    @classmethod
    def from_config(
        cls,
        chain_metadata: Dict[str, Dict[str, Any]],
        warp_core_config: Dict[str, Any],
    ) -> "WarpCore":
        metadata = {
            name: ChainMetadata.from_dict(name, data) for name, data in chain_metadata.items()
        }
        tokens = [WarpToken.from_dict(token) for token in warp_core_config.get("tokens", [])]
        logger.info(f'Warp core loaded with {len(tokens)} token(s) on {sorted(metadata)}')
        return cls(metadata, tokens)

    def find_token(self, chain_name: str, address_or_denom: str) -> Optional[WarpToken]:
        wanted = _normalize_address(address_or_denom)
        for token in self.tokens:
            if token.chain_name == chain_name and _normalize_address(token.address_or_denom) == wanted:
                return token
        return None

    def get_transfer_remote_txs(
        self,
        origin_token_amount: TokenAmount,
        destination: str,
        sender: str,
        recipient: str,
        gas_payment_limit: Optional[int] = None,
    ) -> List[WarpTypedTransaction]:
        """
        Build the transactions that move ``origin_token_amount`` to
        ``recipient`` on ``destination``.

        Raises:
            ValueError: If the amount is zero, the destination is not connected
                or the origin token standard is unsupported
        """
        token = origin_token_amount.token
        if origin_token_amount.amount == 0:
            raise ValueError("Transfer amount must be greater than zero")

        connection = token.connection_to(destination)
        if connection is None:
            raise ValueError(f"Token {token.symbol} on {token.chain_name} is not connected to {destination}")
        if self.find_token(connection.chain_name, connection.address) is None:
            raise ValueError(f"Connected token {connection.address} on {destination} is not in the warp core")
        if destination not in self.chain_metadata:
            raise ValueError(f"No chain metadata for destination {destination}")

        destination_domain = self.chain_metadata[destination].domain_id
        recipient_bytes = address_to_bytes32(recipient)

        if token.standard == TokenStandard.SEALEVEL_HYP_NATIVE.value:
            tx = self._sealevel_native_transfer(
                token, destination_domain, sender, recipient_bytes, origin_token_amount.amount
            )
        elif token.standard == TokenStandard.SOV_HYP_SYNTHETIC.value:
            tx = self._sovereign_synthetic_transfer(
                token, destination_domain, recipient_bytes, origin_token_amount.amount, gas_payment_limit
            )
        else:
            raise ValueError(f"Unsupported token standard {token.standard}")

        logger.info(
            f'Built transfer of {origin_token_amount.amount} {token.symbol} '
            f'from {token.chain_name} to {destination} ({recipient})'
        )
        return [tx]

    def _sealevel_native_transfer(
        self,
        token: WarpToken,
        destination_domain: int,
        sender: str,
        recipient: bytes,
        amount: int,
    ) -> WarpTypedTransaction:
        origin = self.chain_metadata[token.chain_name]
        if not origin.mailbox:
            raise ValueError(f"Chain {origin.name} metadata has no mailbox")
        if amount > 2**256 - 1:
            raise ValueError("Transfer amount does not fit in U256")

        program = to_pubkey(token.address_or_denom)
        mailbox = to_pubkey(origin.mailbox)
        sender_key = to_pubkey(sender)
        unique_message = Keypair()

        token_pda = Pubkey.find_program_address(
            [b"hyperlane_message_recipient", b"-", b"handle", b"-", b"account_metas"], program
        )[0]
        native_collateral_pda = Pubkey.find_program_address(
            [b"hyperlane_token", b"-", b"native_collateral"], program
        )[0]

        accounts = [
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(Pubkey.from_string(SEALEVEL_SPL_NOOP_ADDRESS), is_signer=False, is_writable=False),
            AccountMeta(token_pda, is_signer=False, is_writable=False),
            AccountMeta(mailbox, is_signer=False, is_writable=False),
            AccountMeta(mailbox_outbox_pda(mailbox), is_signer=False, is_writable=True),
            AccountMeta(dispatch_authority_pda(program), is_signer=False, is_writable=False),
            AccountMeta(sender_key, is_signer=True, is_writable=True),
            AccountMeta(unique_message.pubkey(), is_signer=True, is_writable=False),
            AccountMeta(
                dispatched_message_pda(mailbox, unique_message.pubkey()),
                is_signer=False,
                is_writable=True,
            ),
        ]

        if token.igp:
            igp_program = to_pubkey(token.igp["program_id"])
            accounts += [
                AccountMeta(igp_program, is_signer=False, is_writable=False),
                AccountMeta(
                    Pubkey.find_program_address([b"hyperlane_igp", b"-", b"program_data"], igp_program)[0],
                    is_signer=False,
                    is_writable=True,
                ),
                AccountMeta(
                    Pubkey.find_program_address(
                        [b"hyperlane_igp", b"-", b"gas_payment", b"-", bytes(unique_message.pubkey())],
                        igp_program,
                    )[0],
                    is_signer=False,
                    is_writable=True,
                ),
            ]
            if token.igp.get("overhead_account"):
                accounts.append(
                    AccountMeta(to_pubkey(token.igp["overhead_account"]), is_signer=False, is_writable=False)
                )
            accounts.append(AccountMeta(to_pubkey(token.igp["account"]), is_signer=False, is_writable=True))

        accounts += [
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(native_collateral_pda, is_signer=False, is_writable=True),
        ]

        data = (
            PROGRAM_INSTRUCTION_DISCRIMINATOR
            + struct.pack("<BI", TRANSFER_REMOTE_INSTRUCTION, destination_domain)
            + recipient
            + amount.to_bytes(32, "little")
        )
        return WarpTypedTransaction(
            category="transfer",
            protocol=ProtocolType.SEALEVEL,
            transaction=[Instruction(program, data, accounts)],
            signers=[unique_message],
        )

    def _sovereign_synthetic_transfer(
        self,
        token: WarpToken,
        destination_domain: int,
        recipient: bytes,
        amount: int,
        gas_payment_limit: Optional[int],
    ) -> WarpTypedTransaction:
        if amount > MAX_U128:
            raise ValueError("Transfer amount does not fit in u128")
        call = {
            "warp": {
                "transfer_remote": {
                    "warp_route": token.address_or_denom,
                    "destination_domain": destination_domain,
                    "recipient": "0x" + recipient.hex(),
                    "amount": amount,
                    "relayer": None,
                    "gas_payment_limit": MAX_U128 if gas_payment_limit is None else gas_payment_limit,
                }
            }
        }
        return WarpTypedTransaction(
            category="transfer",
            protocol=ProtocolType.SOVEREIGN,
            transaction=call,
        )
