"""
State consistency service for asserting rollup kernel state.

For every new slot the worker reads the kernel values the rollup exposes
through its ``state-consistency`` module (visible slot, rollup height, state
root) and submits an ``assert_block_state`` transaction carrying them. The
rollup reverts the transaction if its own view differs, so a steady stream of
accepted assertions shows that the API and the state transition agree.
"""
import re
import threading
import time
from typing import Any, Callable, Dict, Optional
from logger_config import get_logger
from services.sovereign_rollup_service import SovereignRollupService
from signers import Ed25519Signer
from utils.exceptions import RollupAPIError

logger = get_logger(__name__)

STATE_MODULE = "state-consistency"
STOP_HEIGHT_MESSAGE = "The preferred sequencer has reached the stop height"
ROLLUP_HEIGHT_PATTERN = re.compile(r"Block state assertion failed at rollup height (\d+)")

# 600 * 10ms = 6s, two full slots at the default config
VISIBLE_SLOT_MAX_ATTEMPTS = 600
VISIBLE_SLOT_POLL_SECONDS = 0.01

# Consecutive slot-poll failures that stop the worker
MAX_CONSECUTIVE_ERRORS = 5


def extract_rollup_height_from_error(error_text: str) -> Optional[int]:
    """
    Extract the actual rollup height from a failed assertion message.

    >>> extract_rollup_height_from_error("Block state assertion failed at rollup height 14. ...")
    14
    """
    match = ROLLUP_HEIGHT_PATTERN.search(error_text or "")
    return int(match.group(1)) if match else None


def is_too_late_error(error: RollupAPIError, expected_height: int) -> bool:
    """True when the rollup rejected the assertion because it already moved past ``expected_height``."""
    actual_height = extract_rollup_height_from_error(error.details_message or "")
    return actual_height is not None and actual_height > expected_height


def build_assert_block_state_call(
    visible_slot: int,
    rollup_height: int,
    state_root: Any,
) -> Dict[str, Any]:
    return {
        "state_consistency": {
            "assert_block_state": {
                "expected_visible_slot_number": visible_slot,
                "expected_rollup_height": rollup_height,
                "expected_state_root": list(state_root),
            }
        }
    }


class StateConsistencyWorker:
    """Submits one block state assertion per observed slot."""

    def __init__(
        self,
        rollup: SovereignRollupService,
        stop_height: int,
        stop_event: Optional[threading.Event] = None,
        poll_interval: float = 0.5,
        max_slots: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.rollup = rollup
        self.stop_height = stop_height
        self.stop_event = stop_event or threading.Event()
        self.poll_interval = poll_interval
        self.max_slots = max_slots
        self.sleep = sleep
        self.assertions_sent = 0
        self.assertions_skipped = 0

    def query_visible_slot(self) -> int:
        return int(self.rollup.get_state_value(STATE_MODULE, "latest-visible-slot-number"))

    def query_rollup_height(self) -> int:
        return int(self.rollup.get_state_value(STATE_MODULE, "latest-rollup-height"))

    def query_state_root(self) -> list:
        value = self.rollup.get_state_value(STATE_MODULE, "latest-state-root")
        root = value["root_hashes"] if isinstance(value, dict) else value
        if isinstance(root, str):
            root = bytes.fromhex(root[2:] if root.lower().startswith("0x") else root)
        return list(root)

    def poll_for_visible_slot_update(self, slot_number: int, last_visible_slot: int) -> int:
        """
        Wait until the API's visible slot moves past ``last_visible_slot``.

        Slot notifications can arrive before the API state is updated.

        Raises:
            RuntimeError: If the visible slot does not advance in time
        """
        visible_slot = last_visible_slot
        for attempt in range(VISIBLE_SLOT_MAX_ATTEMPTS):
            visible_slot = self.query_visible_slot()
            if visible_slot > last_visible_slot:
                logger.debug(
                    f'Waited {attempt * 10} ms for API state to be updated after slot {slot_number}'
                )
                return visible_slot
            self.sleep(VISIBLE_SLOT_POLL_SECONDS)

        raise RuntimeError(
            f"Timed out waiting for API state to update. Slot notification: {slot_number}, "
            f"expected visible slot above: {last_visible_slot}, API visible slot: {visible_slot}"
        )

    def send_assertion(self, visible_slot: int, rollup_height: int, state_root: list) -> bool:
        """
        Submit one assertion signed by a throwaway key.

        Returns:
            False when the sequencer reached its stop height, True otherwise

        Raises:
            RollupAPIError: If the assertion is rejected for any other reason
        """
        call = build_assert_block_state_call(visible_slot, rollup_height, state_root)
        try:
            self.rollup.call(call, Ed25519Signer.generate())
        except RollupAPIError as e:
            text = e.details_message or str(e.response_data or e.message)
            if STOP_HEIGHT_MESSAGE in text:
                logger.info('Sequencer reached its stop height, shutting down')
                return False
            if is_too_late_error(e, rollup_height):
                self.assertions_skipped += 1
                logger.warning(
                    f'State assertion for slot {visible_slot} height {rollup_height} was rejected '
                    f'because the rollup already advanced past it; kernel checks skipped for this slot'
                )
                return True
            raise RollupAPIError(
                f"Failed to submit state assertion for slot {visible_slot} "
                f"height {rollup_height}: {text}",
                status_code=e.status_code,
                response_data=e.response_data,
            ) from e

        self.assertions_sent += 1
        return True

    def run(self) -> Dict[str, int]:
        """
        Run until the stop height, the stop event, or ``max_slots`` slots.

        Returns:
            Counters: ``slots_checked``, ``assertions_sent``, ``assertions_skipped``

        Raises:
            RollupAPIError: If fetching the latest slot fails
                ``MAX_CONSECUTIVE_ERRORS`` times in a row
        """
        logger.info(f'State validation worker started (stop height {self.stop_height})')
        last_visible_slot = self.query_visible_slot()
        last_slot_number = None
        slots_checked = 0
        consecutive_errors = 0

        while not self.stop_event.is_set():
            if self.max_slots is not None and slots_checked >= self.max_slots:
                break

            try:
                slot_number = int(self.rollup.get_latest_slot()["number"])
            except RollupAPIError as e:
                consecutive_errors += 1
                logger.error(
                    f'Failed to fetch latest slot '
                    f'(attempt {consecutive_errors}/{MAX_CONSECUTIVE_ERRORS}): {str(e)}'
                )
                if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                    raise
                self.sleep(self.poll_interval)
                continue
            consecutive_errors = 0

            if last_slot_number is not None and slot_number <= last_slot_number:
                self.sleep(self.poll_interval)
                continue

            if last_slot_number is not None and slot_number - last_slot_number > 1:
                logger.warning(
                    f'Skipped {slot_number - last_slot_number - 1} slot(s); slots are produced '
                    f'faster than they are validated'
                )
            last_slot_number = slot_number

            if slot_number >= self.stop_height:
                logger.info(f'Reached rollup stop height {self.stop_height}')
                break

            visible_slot = self.poll_for_visible_slot_update(slot_number, last_visible_slot)
            state_root = self.query_state_root()
            rollup_height = self.query_rollup_height()
            logger.debug(
                f'Visible slot: {visible_slot}, rollup height: {rollup_height}, '
                f'state root: {bytes(state_root).hex()}'
            )

            if not self.send_assertion(visible_slot, rollup_height, state_root):
                break

            last_visible_slot = visible_slot
            slots_checked += 1

        logger.info('State validation worker shutting down')
        return {
            "slots_checked": slots_checked,
            "assertions_sent": self.assertions_sent,
            "assertions_skipped": self.assertions_skipped,
        }
