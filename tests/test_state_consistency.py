"""
Tests for the state consistency worker.
"""
import pytest
from unittest.mock import Mock, patch
from services.state_consistency_service import (
    MAX_CONSECUTIVE_ERRORS,
    STATE_MODULE,
    STOP_HEIGHT_MESSAGE,
    StateConsistencyWorker,
    build_assert_block_state_call,
    extract_rollup_height_from_error,
    is_too_late_error,
)
from utils.exceptions import RollupAPIError


def rejection(message):
    return RollupAPIError(
        "Rollup returned 400 for POST /sequencer/txs",
        status_code=400,
        response_data={"error": {"details": {"message": message}}},
    )


class FakeRollup:
    """Rollup stand-in serving a scripted sequence of slots."""

    def __init__(self, slots, state_root="0x0102"):
        self.slots = list(slots)
        self.slot_index = 0
        self.visible_slot = 0
        self.rollup_height = 0
        self.state_root = state_root
        self.call = Mock(return_value={"id": "0x1", "status": "processed"})

    def get_latest_slot(self):
        number = self.slots[min(self.slot_index, len(self.slots) - 1)]
        self.slot_index += 1
        if isinstance(number, Exception):
            raise number
        # the API catches up with every new slot
        if number > self.visible_slot:
            self.visible_slot = number
            self.rollup_height = number
        return {"number": number}

    def get_state_value(self, module, item):
        assert module == STATE_MODULE
        return {
            "latest-visible-slot-number": self.visible_slot,
            "latest-rollup-height": self.rollup_height,
            "latest-state-root": self.state_root,
        }[item]


class TestHelpers:
    """Tests for module helpers."""

    def test_extract_rollup_height(self):
        text = "Block state assertion failed at rollup height 14. Expected 12"
        assert extract_rollup_height_from_error(text) == 14
        assert extract_rollup_height_from_error("something else") is None
        assert extract_rollup_height_from_error(None) is None

    def test_is_too_late_error(self):
        error = rejection("Block state assertion failed at rollup height 14.")
        assert is_too_late_error(error, expected_height=12)
        assert not is_too_late_error(error, expected_height=14)
        assert not is_too_late_error(rejection("unrelated"), expected_height=1)

    def test_build_assert_block_state_call(self):
        call = build_assert_block_state_call(3, 2, b"\x01\x02")
        assert call == {
            "state_consistency": {
                "assert_block_state": {
                    "expected_visible_slot_number": 3,
                    "expected_rollup_height": 2,
                    "expected_state_root": [1, 2],
                }
            }
        }


class TestStateConsistencyWorker:
    """Tests for StateConsistencyWorker."""

    @pytest.mark.parametrize("value", [
        {"root_hashes": [1, 2]},
        [1, 2],
        "0x0102",
        "0102",
    ])
    def test_query_state_root_shapes(self, value):
        rollup = FakeRollup([1], state_root=value)
        worker = StateConsistencyWorker(rollup, stop_height=10, sleep=Mock())
        assert worker.query_state_root() == [1, 2]

    def test_runs_until_stop_height(self):
        rollup = FakeRollup([1, 2, 3, 4])
        worker = StateConsistencyWorker(rollup, stop_height=4, sleep=Mock())

        result = worker.run()

        assert result == {"slots_checked": 3, "assertions_sent": 3, "assertions_skipped": 0}
        sent = [c.args[0]["state_consistency"]["assert_block_state"] for c in rollup.call.call_args_list]
        assert [a["expected_visible_slot_number"] for a in sent] == [1, 2, 3]
        assert sent[0]["expected_state_root"] == [1, 2]

    def test_each_assertion_uses_fresh_signer(self):
        rollup = FakeRollup([1, 2, 3])
        StateConsistencyWorker(rollup, stop_height=3, sleep=Mock()).run()

        signers = [c.args[1].public_key for c in rollup.call.call_args_list]
        assert len(set(signers)) == len(signers) == 2

    def test_max_slots(self):
        rollup = FakeRollup([1, 2, 3, 4, 5])
        worker = StateConsistencyWorker(rollup, stop_height=100, sleep=Mock(), max_slots=2)

        assert worker.run()["slots_checked"] == 2

    def test_repeated_slot_waits(self):
        rollup = FakeRollup([1, 1, 1, 2, 3])
        sleep = Mock()
        worker = StateConsistencyWorker(rollup, stop_height=3, poll_interval=0.25, sleep=sleep)

        result = worker.run()

        assert result["slots_checked"] == 2
        sleep.assert_any_call(0.25)

    def test_stop_event(self):
        rollup = FakeRollup([1, 2, 3])
        worker = StateConsistencyWorker(rollup, stop_height=100, sleep=Mock())
        worker.stop_event.set()

        assert worker.run()["slots_checked"] == 0
        rollup.call.assert_not_called()

    def test_stop_height_rejection_ends_run(self):
        rollup = FakeRollup([1, 2, 3])
        rollup.call.side_effect = rejection(STOP_HEIGHT_MESSAGE)
        worker = StateConsistencyWorker(rollup, stop_height=100, sleep=Mock())

        result = worker.run()

        assert result == {"slots_checked": 0, "assertions_sent": 0, "assertions_skipped": 0}

    def test_too_late_rejection_is_skipped(self):
        rollup = FakeRollup([1, 2, 3])
        rollup.call.side_effect = [
            rejection("Block state assertion failed at rollup height 5. Expected 1"),
            {"id": "0x2"},
        ]
        worker = StateConsistencyWorker(rollup, stop_height=3, sleep=Mock())

        result = worker.run()

        assert result == {"slots_checked": 2, "assertions_sent": 1, "assertions_skipped": 1}

    def test_other_rejection_raises(self):
        rollup = FakeRollup([1, 2])
        rollup.call.side_effect = rejection("Block state assertion failed: state root mismatch")
        worker = StateConsistencyWorker(rollup, stop_height=100, sleep=Mock())

        with pytest.raises(RollupAPIError, match="state root mismatch"):
            worker.run()

    def test_visible_slot_never_advances(self):
        rollup = Mock()
        rollup.get_state_value.return_value = 4
        sleep = Mock()
        worker = StateConsistencyWorker(rollup, stop_height=100, sleep=sleep)

        with pytest.raises(RuntimeError, match="Timed out waiting for API state"):
            worker.poll_for_visible_slot_update(slot_number=5, last_visible_slot=4)

        assert sleep.call_count == 600

    def test_skipped_slots_are_reported(self):
        rollup = FakeRollup([2, 5, 6])
        worker = StateConsistencyWorker(rollup, stop_height=6, sleep=Mock())

        with patch('services.state_consistency_service.logger') as mock_logger:
            result = worker.run()

        assert result["slots_checked"] == 2
        warnings = [c.args[0] for c in mock_logger.warning.call_args_list]
        assert len(warnings) == 1
        assert warnings[0].startswith('Skipped 2 slot(s)')


class TestSlotPollErrors:
    """Tests for how the worker handles failures fetching the latest slot."""

    def test_single_failure_is_tolerated(self):
        failure = RollupAPIError("Rollup returned 503 for GET /ledger/slots/latest", status_code=503)
        rollup = FakeRollup([2, failure, 3, 10])
        sleep = Mock()
        worker = StateConsistencyWorker(rollup, stop_height=10, poll_interval=0.25, sleep=sleep)

        with patch('services.state_consistency_service.logger') as mock_logger:
            result = worker.run()

        assert result["slots_checked"] == 2
        assert rollup.call.call_count == 2
        sleep.assert_any_call(0.25)
        errors = [c.args[0] for c in mock_logger.error.call_args_list]
        assert len(errors) == 1
        assert f'attempt 1/{MAX_CONSECUTIVE_ERRORS}' in errors[0]

    def test_gives_up_after_consecutive_failures(self):
        failure = RollupAPIError("Rollup returned 503 for GET /ledger/slots/latest", status_code=503)
        rollup = FakeRollup([1, failure])
        worker = StateConsistencyWorker(rollup, stop_height=100, sleep=Mock())

        with patch('services.state_consistency_service.logger') as mock_logger:
            with pytest.raises(RollupAPIError, match="503"):
                worker.run()

        errors = [c.args[0] for c in mock_logger.error.call_args_list]
        assert len(errors) == MAX_CONSECUTIVE_ERRORS
        assert f'attempt {MAX_CONSECUTIVE_ERRORS}/{MAX_CONSECUTIVE_ERRORS}' in errors[-1]
        assert rollup.call.call_count == 1

    def test_success_resets_failure_count(self):
        failure = RollupAPIError("Rollup returned 503 for GET /ledger/slots/latest", status_code=503)
        almost = [failure] * (MAX_CONSECUTIVE_ERRORS - 1)
        rollup = FakeRollup(almost + [1] + almost + [2, 3])
        worker = StateConsistencyWorker(rollup, stop_height=3, sleep=Mock())

        result = worker.run()

        assert result["slots_checked"] == 2
