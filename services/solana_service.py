"""
Solana service for RPC transaction submission.
"""
from typing import Optional, Sequence
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.signature import Signature
from solders.transaction import Transaction
from logger_config import get_logger
from utils.exceptions import SolanaTransactionError

logger = get_logger(__name__)


class SolanaService:
    """Service for Solana RPC operations."""

    def __init__(self, rpc_url: str, commitment: Commitment = Confirmed) -> None:
        """
        Initialize Solana service.

        Args:
            rpc_url: Solana JSON-RPC endpoint
            commitment: Commitment level for preflight and confirmation
        """
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        """Lazy initialization of the RPC client."""
        if self._client is None:
            self._client = Client(self.rpc_url, commitment=self.commitment)
        return self._client

    def build_transaction(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair]
    ) -> Transaction:
        """
        Build and sign a transaction against the latest blockhash.

        The first signer pays the fees. Every signer signs, so keypairs created
        by a transaction builder (e.g. unique message accounts) keep their
        signatures.
        """
        if not signers:
            raise ValueError("At least one signer is required")
        blockhash = self.client.get_latest_blockhash(commitment=self.commitment).value.blockhash
        message = Message.new_with_blockhash(list(instructions), signers[0].pubkey(), blockhash)
        return Transaction(list(signers), message, blockhash)

    def send_raw_and_confirm(self, transaction: Transaction) -> str:
        """
        Send a signed transaction and wait for confirmation.

        Returns:
            Base58 transaction signature

        Raises:
            SolanaTransactionError: If sending fails or the transaction errors
        """
        opts = TxOpts(skip_preflight=False, preflight_commitment=self.commitment)
        try:
            signature = self.client.send_raw_transaction(bytes(transaction), opts=opts).value
        except RPCException as e:
            logger.error(f'Solana rejected transaction: {str(e)}')
            raise SolanaTransactionError(f"Failed to send transaction: {str(e)}", error=e.args) from e

        self.confirm(signature)
        return str(signature)

    def send_and_confirm(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair]
    ) -> str:
        """Build, sign, send and confirm a transaction from instructions."""
        return self.send_raw_and_confirm(self.build_transaction(instructions, signers))

    def confirm(self, signature: Signature) -> None:
        """
        Wait for a signature to reach the service commitment level.

        Raises:
            SolanaTransactionError: If the transaction failed or never confirmed
        """
        try:
            response = self.client.confirm_transaction(signature, self.commitment)
        except UnconfirmedTxError as e:
            raise SolanaTransactionError(
                f"Transaction {signature} was not confirmed: {str(e)}",
                signature=str(signature),
            ) from e

        status = response.value[0] if response.value else None
        if status is not None and status.err is not None:
            logger.error(f'Transaction {signature} failed: {status.err}')
            raise SolanaTransactionError(
                f"Transaction failed: {status.err}",
                signature=str(signature),
                error=status.err,
            )
        logger.info(f'Transaction {signature} confirmed')
