"""
Shared fixtures: a small rollup schema covering the calls the scripts send.
"""
import copy
import json
import pytest
from solders.keypair import Keypair


def _u(size):
    return {"Immediate": {"Integer": [size, "Decimal"]}}


HEX32 = {"Immediate": {"ByteArray": {"len": 32, "display": "Hex"}}}
BASE58_32 = {"Immediate": {"ByteArray": {"len": 32, "display": "Base58"}}}

TEST_SCHEMA = {
    "types": [
        # 0: Transaction
        {"Enum": {"type_name": "Transaction", "variants": [
            {"name": "V0", "discriminant": 0, "value": {"ByIndex": 1}},
        ]}},
        # 1: TransactionV0
        {"Struct": {"type_name": "TransactionV0", "fields": [
            {"display_name": "pub_key", "value": {"ByIndex": 5}},
            {"display_name": "signature", "value": {"ByIndex": 6}},
            {"display_name": "runtime_call", "value": {"ByIndex": 3}},
            {"display_name": "generation", "value": _u("u64")},
            {"display_name": "details", "value": {"ByIndex": 4}},
        ]}},
        # 2: UnsignedTransaction
        {"Struct": {"type_name": "UnsignedTransaction", "fields": [
            {"display_name": "runtime_call", "value": {"ByIndex": 3}},
            {"display_name": "generation", "value": _u("u64")},
            {"display_name": "details", "value": {"ByIndex": 4}},
        ]}},
        # 3: RuntimeCall
        {"Enum": {"type_name": "RuntimeCall", "variants": [
            {"name": "warp", "discriminant": 0, "value": {"ByIndex": 7}},
            {"name": "state_consistency", "discriminant": 1, "value": {"ByIndex": 8}},
        ]}},
        # 4: TxDetails
        {"Struct": {"type_name": "TxDetails", "fields": [
            {"display_name": "max_priority_fee_bips", "value": _u("u64")},
            {"display_name": "max_fee", "value": _u("u128")},
            {"display_name": "gas_limit", "value": {"Immediate": {"Option": {
                "value": {"Immediate": {"Array": {"len": 2, "value": _u("u64")}}}}}}},
            {"display_name": "chain_id", "value": _u("u64")},
        ]}},
        # 5: PublicKey
        {"ByteArray": {"len": 32, "display": "Hex"}},
        # 6: Signature
        {"ByteArray": {"len": 64, "display": "Hex"}},
        # 7: warp CallMessage
        {"Enum": {"type_name": "WarpCallMessage", "variants": [
            {"name": "register", "discriminant": 0, "value": {"ByIndex": 9}},
            {"name": "transfer_remote", "discriminant": 1, "value": {"ByIndex": 10}},
        ]}},
        # 8: state consistency CallMessage
        {"Enum": {"type_name": "StateConsistencyCallMessage", "variants": [
            {"name": "assert_block_state", "discriminant": 0, "value": {"ByIndex": 11}},
        ]}},
        # 9: Register
        {"Struct": {"type_name": "Register", "fields": [
            {"display_name": "admin", "value": {"Immediate": {"Enum": {
                "type_name": "Admin", "variants": [
                    {"name": "None", "discriminant": 0, "value": None},
                    {"name": "InsecureOwner", "discriminant": 1, "value": BASE58_32},
                ]}}}},
            {"display_name": "ism", "value": {"Immediate": {"Enum": {
                "type_name": "Ism", "variants": [
                    {"name": "AlwaysTrust", "discriminant": 0, "value": None},
                    {"name": "MessageIdMultisig", "discriminant": 1, "value": {"Immediate": {"Struct": {
                        "type_name": "MessageIdMultisig", "fields": [
                            {"display_name": "threshold", "value": _u("u32")},
                            {"display_name": "validators", "value": {"Immediate": {"Vec": {
                                "value": {"Immediate": {"ByteArray": {"len": 20, "display": "Hex"}}}}}}},
                        ]}}}},
                ]}}}},
            {"display_name": "token_source", "value": {"Immediate": {"Enum": {
                "type_name": "TokenSource", "variants": [
                    {"name": "Native", "discriminant": 0, "value": None},
                    {"name": "Synthetic", "discriminant": 1, "value": {"Immediate": {"Struct": {
                        "type_name": "Synthetic", "fields": [
                            {"display_name": "remote_token_id", "value": HEX32},
                            {"display_name": "local_decimals", "value": _u("u8")},
                            {"display_name": "remote_decimals", "value": _u("u8")},
                        ]}}}},
                ]}}}},
            {"display_name": "remote_routers", "value": {"Immediate": {"Vec": {"value": {"Immediate": {
                "Tuple": {"fields": [{"value": _u("u32")}, {"value": HEX32}]}}}}}}},
            {"display_name": "inbound_transferrable_tokens_limit", "value": _u("u128")},
            {"display_name": "inbound_limit_replenishment_per_slot", "value": _u("u128")},
            {"display_name": "outbound_transferrable_tokens_limit", "value": _u("u128")},
            {"display_name": "outbound_limit_replenishment_per_slot", "value": _u("u128")},
        ]}},
        # 10: TransferRemote
        {"Struct": {"type_name": "TransferRemote", "fields": [
            {"display_name": "warp_route", "value": HEX32},
            {"display_name": "destination_domain", "value": _u("u32")},
            {"display_name": "recipient", "value": HEX32},
            {"display_name": "amount", "value": _u("u128")},
            {"display_name": "relayer", "value": {"Immediate": {"Option": {"value": BASE58_32}}}},
            {"display_name": "gas_payment_limit", "value": _u("u128")},
        ]}},
        # 11: AssertBlockState
        {"Struct": {"type_name": "AssertBlockState", "fields": [
            {"display_name": "expected_visible_slot_number", "value": _u("u64")},
            {"display_name": "expected_rollup_height", "value": _u("u64")},
            {"display_name": "expected_state_root", "value": {"Immediate": {"ByteVec": {"display": "Hex"}}}},
        ]}},
    ],
    "root_type_indices": [0, 2, 3, 5],
    "chain_data": {"chain_id": 4321, "chain_name": "TestRollup"},
    "chain_hash": "0x" + "ab" * 32,
}


@pytest.fixture
def schema_document():
    """A fresh copy of the test rollup schema document."""
    return copy.deepcopy(TEST_SCHEMA)


@pytest.fixture
def registry_files(tmp_path):
    """Local registry files for the sealevel/sovereign route."""
    agents_dir = tmp_path / "agents"
    agents_dir.mkdir()
    (agents_dir / "config.json").write_text(json.dumps({
        "chains": {
            "sealevel": {
                "domainId": 1337,
                "mailbox": str(Keypair().pubkey()),
            },
            "sovereign": {"domainId": 5555},
        }
    }))

    warp_dir = tmp_path / "warp-route"
    warp_dir.mkdir()
    (warp_dir / "program-ids.json").write_text(json.dumps({
        "sealevel": {
            "base58": str(Keypair().pubkey()),
            "hex": "0xa77b4e2ed231894cc8cb8eee21adcc705d8489bccc6b2fcf40a358de23e60b7b",
        },
        "sovereign": {
            "hex": "0xcbb6266a1860446ea4ea06eaa02c443b64e3358756fb2e28e2476c57b3521ac7",
        },
    }))
    (warp_dir / "token-config.json").write_text(json.dumps({
        "sealevel": {"type": "native", "decimals": 9},
        "sovereign": {"type": "synthetic", "decimals": 9, "token": "sov-sol"},
    }))

    keypair_path = tmp_path / "signer_keypair.json"
    keypair = Keypair()
    keypair_path.write_text(json.dumps(list(bytes(keypair))))

    return {
        "agent_config_path": str(agents_dir / "config.json"),
        "warp_route_dir": str(warp_dir),
        "solana_keypair_path": str(keypair_path),
        "keypair": keypair,
    }
