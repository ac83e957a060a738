"""
Builder for Hyperlane register-program transactions on Solana.

The register program dispatches a Hyperlane message through the mailbox that
the rollup's SolanaRegistration module turns into a ``UserRegistered`` event.
"""
import struct
from dataclasses import dataclass, field
from typing import List, Optional, Union
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from constants import SEALEVEL_SPL_NOOP_ADDRESS
from logger_config import get_logger

logger = get_logger(__name__)

REGISTER_INSTRUCTION = 0


def to_pubkey(value: Union[str, Pubkey]) -> Pubkey:
    return value if isinstance(value, Pubkey) else Pubkey.from_string(value)


def mailbox_outbox_pda(mailbox: Pubkey) -> Pubkey:
    return Pubkey.find_program_address([b"hyperlane", b"-", b"outbox"], mailbox)[0]


def dispatch_authority_pda(sender_program: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"hyperlane_dispatcher", b"-", b"dispatch_authority"], sender_program
    )[0]


def dispatched_message_pda(mailbox: Pubkey, unique_message: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"hyperlane", b"-", b"dispatched_message", b"-", bytes(unique_message)],
        mailbox,
    )[0]


@dataclass
class RegisterTransaction:
    """Instructions plus every keypair that must sign them (payer first)."""

    instructions: List[Instruction]
    signers: List[Keypair] = field(default_factory=list)
    unique_message: Optional[Pubkey] = None


class HyperlaneSolanaRegister:
    """Builds register transactions for a mailbox/register program pair."""

    def __init__(self, mailbox: Union[str, Pubkey], register: Union[str, Pubkey]) -> None:
        self.mailbox = to_pubkey(mailbox)
        self.register = to_pubkey(register)
        self.noop = Pubkey.from_string(SEALEVEL_SPL_NOOP_ADDRESS)

    def build_instruction_data(self, destination: int, embedded_user: Pubkey) -> bytes:
        """Borsh ``Register { destination: u32, embedded_user: Pubkey }``."""
        return (
            struct.pack("<BI", REGISTER_INSTRUCTION, destination)
            + bytes(embedded_user)
        )

    def build(
        self,
        payer: Keypair,
        destination: int,
        embedded_user: Union[str, Pubkey],
    ) -> RegisterTransaction:
        """
        Build the register transaction.

        Args:
            payer: Fee payer and registering account
            destination: Hyperlane domain id of the rollup
            embedded_user: Account to register on the rollup

        Returns:
            RegisterTransaction holding the instruction and its signers
        """
        if not 0 <= destination <= 0xFFFFFFFF:
            raise ValueError(f"Destination domain must fit in u32, got {destination}")

        embedded_user = to_pubkey(embedded_user)
        unique_message = Keypair()

        accounts = [
            AccountMeta(payer.pubkey(), is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(self.noop, is_signer=False, is_writable=False),
            AccountMeta(self.mailbox, is_signer=False, is_writable=False),
            AccountMeta(mailbox_outbox_pda(self.mailbox), is_signer=False, is_writable=True),
            AccountMeta(dispatch_authority_pda(self.register), is_signer=False, is_writable=False),
            AccountMeta(unique_message.pubkey(), is_signer=True, is_writable=False),
            AccountMeta(
                dispatched_message_pda(self.mailbox, unique_message.pubkey()),
                is_signer=False,
                is_writable=True,
            ),
        ]
        instruction = Instruction(
            self.register,
            self.build_instruction_data(destination, embedded_user),
            accounts,
        )
        logger.info(
            f'Built register instruction for {embedded_user} to domain {destination} '
            f'(unique message {unique_message.pubkey()})'
        )
        return RegisterTransaction(
            instructions=[instruction],
            signers=[payer, unique_message],
            unique_message=unique_message.pubkey(),
        )
