"""
Sovereign rollup service for REST API calls.
"""
import base64
import time
import requests
from typing import Dict, Any, List, Optional
from logger_config import get_logger
from schema_codec import RollupSchema
from signers import Ed25519Signer
from utils.exceptions import RollupAPIError

logger = get_logger(__name__)


class SovereignRollupService:
    """Service for Sovereign rollup REST API operations."""

    DEFAULT_HEADERS = {
        'Accept': 'application/json',
        'Content-Type': 'application/json',
    }

    def __init__(
        self,
        base_url: str,
        max_fee: int = 100_000_000,
        max_priority_fee_bips: int = 0,
        timeout: float = 30,
        headers: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Initialize Sovereign rollup service.

        Args:
            base_url: Rollup node URL, e.g. http://localhost:12346
            max_fee: Maximum fee attached to each transaction
            max_priority_fee_bips: Priority fee in basis points
            timeout: HTTP timeout in seconds
            headers: Optional custom headers (defaults to DEFAULT_HEADERS)
        """
        self.base_url: str = base_url.rstrip('/')
        self.max_fee: int = max_fee
        self.max_priority_fee_bips: int = max_priority_fee_bips
        self.timeout: float = timeout
        self.headers: Dict[str, str] = headers or self.DEFAULT_HEADERS
        self._schema: Optional[RollupSchema] = None

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if method == 'GET':
                response = requests.get(url, headers=self.headers, timeout=self.timeout)
            else:
                response = requests.post(url, json=body, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f'Rollup request {method} {path} failed: {str(e)}')
            raise RollupAPIError(f"Rollup request {method} {path} failed: {str(e)}") from e

        if not response.ok:
            try:
                response_data = response.json()
            except ValueError:
                response_data = {'raw': response.text}
            error = RollupAPIError(
                f"Rollup returned {response.status_code} for {method} {path}",
                status_code=response.status_code,
                response_data=response_data,
            )
            logger.error(f'{error.message}: {error.details_message or response_data}')
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise RollupAPIError(
                f"Rollup returned a non-JSON body for {method} {path}",
                status_code=response.status_code,
            ) from e

    def get_schema(self) -> RollupSchema:
        """Fetch (once) the rollup's universal-wallet schema."""
        if self._schema is None:
            self._schema = RollupSchema(self._request('GET', '/rollup/schema'))
            logger.info(
                f'Loaded rollup schema for chain {self._schema.chain_name} '
                f'(chain id {self._schema.chain_id})'
            )
        return self._schema

    def build_unsigned_transaction(
        self,
        runtime_call: Dict[str, Any],
        generation: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Build the unsigned transaction body for a runtime call.

        Args:
            runtime_call: JSON call, e.g. ``{"warp": {"register": {...}}}``
            generation: Replay-protection generation, defaults to unix time

        Returns:
            Unsigned transaction dictionary
        """
        schema = self.get_schema()
        return {
            'runtime_call': runtime_call,
            'generation': int(time.time()) if generation is None else generation,
            'details': {
                'max_priority_fee_bips': self.max_priority_fee_bips,
                'max_fee': self.max_fee,
                'gas_limit': None,
                'chain_id': schema.chain_id,
            },
        }

    def sign_transaction(
        self,
        runtime_call: Dict[str, Any],
        signer: Ed25519Signer,
        generation: Optional[int] = None
    ) -> bytes:
        """
        Build, sign and serialize a transaction.

        The signature covers the borsh-encoded unsigned transaction followed
        by the rollup's chain hash.
        """
        schema = self.get_schema()
        unsigned = self.build_unsigned_transaction(runtime_call, generation)
        message = schema.encode_unsigned_transaction(unsigned) + schema.chain_hash
        signature = signer.sign(message)

        signed = {
            'pub_key': signer.public_key,
            'signature': signature,
            **unsigned,
        }
        return schema.encode_transaction(signed)

    def submit_transaction(self, tx_bytes: bytes) -> Dict[str, Any]:
        """
        Submit a serialized transaction to the sequencer.

        Returns:
            Sequencer response (``id``, ``status``, ``events``, ``receipt``)

        Raises:
            RollupAPIError: If the sequencer rejects the transaction
        """
        body = {'body': base64.b64encode(tx_bytes).decode('ascii')}
        response = self._request('POST', '/sequencer/txs', body)
        logger.info(
            f'Transaction {response.get("id")} accepted by sequencer '
            f'with status {response.get("status")}'
        )
        return response

    def call(
        self,
        runtime_call: Dict[str, Any],
        signer: Ed25519Signer,
        generation: Optional[int] = None
    ) -> Dict[str, Any]:
        """Sign and submit a runtime call, returning the sequencer response."""
        module = next(iter(runtime_call), '?')
        logger.info(f'Submitting {module} call signed by {signer.public_key_hex}')
        tx_bytes = self.sign_transaction(runtime_call, signer, generation)
        return self.submit_transaction(tx_bytes)

    def list_events(self) -> List[Dict[str, Any]]:
        """List ledger events known to the node."""
        events = self._request('GET', '/ledger/events')
        if isinstance(events, dict):
            events = events.get('data', events.get('events', []))
        return events

    def get_latest_slot(self) -> Dict[str, Any]:
        return self._request('GET', '/ledger/slots/latest')

    def get_slot(self, slot_number: int) -> Dict[str, Any]:
        return self._request('GET', f'/ledger/slots/{slot_number}')

    def get_state_value(self, module: str, item: str) -> Any:
        """
        Read a module state value.

        Args:
            module: Module path segment, e.g. ``state-consistency``
            item: State item path segment, e.g. ``latest-rollup-height``

        Returns:
            The ``value`` field of the response
        """
        response = self._request('GET', f'/modules/{module}/state/{item}/')
        if not isinstance(response, dict) or 'value' not in response:
            raise RollupAPIError(
                f"State response for {module}/{item} has no value",
                response_data=response if isinstance(response, dict) else None,
            )
        return response['value']

    def wait_until_ready(self, attempts: int = 600, interval: float = 0.1) -> None:
        """
        Wait for the node to serve its genesis slot.

        Raises:
            RollupAPIError: If the node is not ready after ``attempts`` tries
        """
        for attempt in range(attempts):
            try:
                response = requests.get(
                    f"{self.base_url}/ledger/slots/0",
                    headers=self.headers,
                    timeout=self.timeout,
                )
                if response.ok:
                    logger.info(f'Rollup ready after {attempt + 1} attempt(s)')
                    return
            except requests.RequestException as e:
                logger.debug(f'Rollup not reachable yet: {str(e)}')
            time.sleep(interval)
        raise RollupAPIError(
            f"Rollup at {self.base_url} not ready after {attempts} attempts"
        )
