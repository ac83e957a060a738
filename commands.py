"""
Operator commands for the sealevel <-> sovereign warp route.

Each command is a short sequence of client calls: resolve a signer, build a
registration or transfer request, submit it, poll for confirmation and return
the result. ``main`` exposes them on the command line as ``warp-ops``.
"""
import argparse
import json
import sys
from typing import Any, Dict, Iterable, List, Optional, Set
import base58
from eth_account import Account
from eth_keys import keys
from solders.keypair import Keypair
from config import get_config
from constants import (
    DEFAULT_EMBEDDED_USER,
    DEPLOYER_ADDRESS,
    LOCAL_VALIDATOR_ADDRESS,
    MAX_U128,
    REGISTER_PROGRAM_ID,
    ROUTE_ALREADY_REGISTERED_MESSAGE,
    SOLANA_DOMAIN_ID,
    SOLANA_WARP_ROUTE_ID,
    TOKEN_DECIMALS,
    USER_REGISTERED_EVENT_KEY,
)
from logger_config import get_logger
from registry import LocalRegistry
from services.hyperlane_register_service import HyperlaneSolanaRegister
from services.key_service import get_solana_keypair, get_sovereign_signer
from services.solana_service import SolanaService
from services.sovereign_rollup_service import SovereignRollupService
from services.state_consistency_service import StateConsistencyWorker
from services.warp_core_service import ProtocolType, TokenStandard, WarpCore, address_to_bytes32
from utils.decorators import operator_command
from utils.exceptions import RollupAPIError
from utils.polling import poll_until

logger = get_logger(__name__)


def get_rollup_service() -> SovereignRollupService:
    config = get_config()
    return SovereignRollupService(config.sovereign_rollup_url, max_fee=config.sovereign_max_fee)


def build_warp_route_register_call(
    admin: str = DEPLOYER_ADDRESS,
    validator: str = LOCAL_VALIDATOR_ADDRESS,
    remote_token_id: str = SOLANA_WARP_ROUTE_ID,
    remote_domain: int = SOLANA_DOMAIN_ID,
) -> Dict[str, Any]:
    """Register a synthetic warp route backed by the Solana native token route."""
    return {
        "warp": {
            "register": {
                # The deployer can modify the warp route
                "admin": {"InsecureOwner": admin},
                "ism": {
                    "MessageIdMultisig": {
                        "threshold": 1,
                        "validators": [validator],
                    }
                },
                "token_source": {
                    "Synthetic": {
                        "remote_token_id": remote_token_id,
                        "local_decimals": TOKEN_DECIMALS,
                        "remote_decimals": TOKEN_DECIMALS,
                    }
                },
                "remote_routers": [[remote_domain, remote_token_id]],
                "inbound_transferrable_tokens_limit": str(MAX_U128),
                "inbound_limit_replenishment_per_slot": str(MAX_U128),
                "outbound_transferrable_tokens_limit": str(MAX_U128),
                "outbound_limit_replenishment_per_slot": str(MAX_U128),
            }
        }
    }


def build_igp_relayer_config_call(
    beneficiary: str = DEPLOYER_ADDRESS,
    remote_domain: int = SOLANA_DOMAIN_ID,
) -> Dict[str, Any]:
    return {
        "interchain_gas_paymaster": {
            "set_relayer_config": {
                "beneficiary": beneficiary,
                "default_gas": 2000,
                "domain_default_gas": [
                    {"default_gas": 3000, "domain": remote_domain},
                ],
                "domain_oracle_data": [
                    {
                        "data_value": {"gas_price": 1, "token_exchange_rate": 1},
                        "domain": remote_domain,
                    },
                ],
            }
        }
    }


def is_route_already_exists_error(error: Exception) -> bool:
    message = getattr(error, "details_message", None) or ""
    return ROUTE_ALREADY_REGISTERED_MESSAGE in message


@operator_command
def setup_warp_route() -> Dict[str, Any]:
    """Register the sovereign side of the warp route and configure the IGP."""
    rollup = get_rollup_service()
    signer = get_sovereign_signer(get_config())

    try:
        warp_response = rollup.call(build_warp_route_register_call(), signer)
        logger.info(f'Warp route created: {warp_response}')
        igp_response = rollup.call(build_igp_relayer_config_call(), signer)
        logger.info(f'IGP configured: {igp_response}')
    except RollupAPIError as e:
        if is_route_already_exists_error(e):
            logger.info('Warp route was already registered by this deployer, nothing to do')
            return {"status": "already_registered"}
        raise

    return {"status": "created", "warp_route": warp_response, "igp": igp_response}


@operator_command
def generate_solana_account() -> Dict[str, Any]:
    """Generate a fresh Solana keypair."""
    keypair = Keypair()
    secret_key = bytes(keypair)
    private_key = secret_key[:32]

    return {
        "public_key": str(keypair.pubkey()),
        "private_key_hex": private_key.hex(),
        "private_key_base58": base58.b58encode(private_key).decode("ascii"),
        "secret_key_base58": base58.b58encode(secret_key).decode("ascii"),
    }


@operator_command
def generate_validator() -> Dict[str, Any]:
    """Generate a fresh EVM validator key with its mnemonic."""
    Account.enable_unaudited_hdwallet_features()
    account, mnemonic = Account.create_with_mnemonic()
    private_key = bytes(account.key)
    public_key = keys.PrivateKey(private_key).public_key

    return {
        "address": account.address,
        "private_key": "0x" + private_key.hex(),
        "public_key": "0x04" + public_key.to_bytes().hex(),
        "mnemonic": mnemonic,
    }


def event_identity(event: Dict[str, Any]) -> Any:
    for key in ("number", "id", "event_number"):
        if key in event:
            return event[key]
    return json.dumps(event, sort_keys=True, default=str)


def find_new_event(
    events: Iterable[Dict[str, Any]],
    key: str,
    seen: Set[Any],
) -> Optional[Dict[str, Any]]:
    for event in events:
        if event.get("key") == key and event_identity(event) not in seen:
            return event
    return None


@operator_command
def solana_sovereign_register(
    embedded_user: str = DEFAULT_EMBEDDED_USER,
) -> Dict[str, Any]:
    """
    Register ``embedded_user`` on the rollup through the Solana register program
    and wait for the rollup's ``UserRegistered`` event.
    """
    config = get_config()
    registry = LocalRegistry.from_config(config)
    rollup = get_rollup_service()
    solana = SolanaService(config.solana_rpc_url)
    payer = get_solana_keypair(config)

    # Events already on the rollup do not count as confirmation
    seen = {event_identity(event) for event in rollup.list_events()}

    register = HyperlaneSolanaRegister(mailbox=registry.mailbox, register=REGISTER_PROGRAM_ID)
    tx = register.build(payer, destination=registry.sovereign_domain_id, embedded_user=embedded_user)
    signature = solana.send_and_confirm(tx.instructions, tx.signers)
    logger.info(f'Transaction confirmed on Solana with signature: {signature}')

    event = poll_until(
        lambda: find_new_event(rollup.list_events(), USER_REGISTERED_EVENT_KEY, seen),
        interval=config.poll_interval_seconds,
        timeout=config.poll_timeout_seconds,
        description=f"{USER_REGISTERED_EVENT_KEY} event",
    )
    logger.info('Hyperlane registration confirmed on Sovereign')

    return {"signature": signature, "event": event}


def build_warp_core_config(registry: LocalRegistry) -> Dict[str, Any]:
    """Solana native token <-> Sovereign synthetic token."""
    solana_token_id = registry.solana_token_id
    sovereign_token_id = registry.sovereign_token_id
    sealevel_token: Dict[str, Any] = {
        "addressOrDenom": solana_token_id,
        "chainName": "sealevel",
        "connections": [
            {"token": f"{ProtocolType.SOVEREIGN.value}|sovereign|{sovereign_token_id}"},
        ],
        "decimals": TOKEN_DECIMALS,
        "name": "Solana",
        "standard": TokenStandard.SEALEVEL_HYP_NATIVE.value,
        "symbol": "SOL",
    }
    if registry.sealevel_igp:
        sealevel_token["igp"] = registry.sealevel_igp

    return {
        "tokens": [
            {
                "addressOrDenom": sovereign_token_id,
                "chainName": "sovereign",
                "collateralAddressOrDenom": registry.sovereign_collateral,
                "connections": [
                    {"token": f"{ProtocolType.SEALEVEL.value}|sealevel|{solana_token_id}"},
                ],
                "decimals": TOKEN_DECIMALS,
                "name": "Solana",
                "standard": TokenStandard.SOV_HYP_SYNTHETIC.value,
                "symbol": "SOL",
            },
            sealevel_token,
        ]
    }


@operator_command
def transfer_roundtrip(
    amount: int = 1,
    recipient: str = DEPLOYER_ADDRESS,
    return_leg: bool = False,
) -> Dict[str, Any]:
    """
    Send ``amount`` base units of SOL from Solana to ``recipient`` on the
    rollup and, with ``return_leg``, send them back to the Solana payer.
    """
    config = get_config()
    registry = LocalRegistry.from_config(config)
    warp_core = WarpCore.from_config(registry.chain_metadata(), build_warp_core_config(registry))

    solana_token = warp_core.find_token("sealevel", registry.solana_token_id)
    if solana_token is None:
        raise ValueError("Solana token not found in WarpCore")
    logger.info(f'Origin token: {solana_token.symbol} ({solana_token.address_or_denom})')

    signer = None
    if return_leg:
        # The rollup key sends the return leg, so it must own the outbound recipient
        signer = get_sovereign_signer(config)
        if address_to_bytes32(recipient) != signer.public_key:
            raise ValueError(
                f"Return leg needs the rollup signer as recipient, got {recipient} "
                f"but the signer is {base58.b58encode(signer.public_key).decode()}"
            )

    keypair = get_solana_keypair(config)
    solana = SolanaService(config.solana_rpc_url)
    sender = str(keypair.pubkey())

    outbound: List[str] = []
    for tx in warp_core.get_transfer_remote_txs(
        origin_token_amount=solana_token.amount(amount),
        destination="sovereign",
        sender=sender,
        recipient=recipient,
    ):
        logger.info(f'Processing {tx.category} transaction...')
        # The builder's keypairs must sign too, or their signatures are lost
        signature = solana.send_and_confirm(tx.transaction, [keypair, *tx.signers])
        logger.info(f'Transaction confirmed: {signature}')
        outbound.append(signature)

    result: Dict[str, Any] = {"amount": amount, "sender": sender, "recipient": recipient, "outbound": outbound}
    if not return_leg:
        return result

    sovereign_token = warp_core.find_token("sovereign", registry.sovereign_token_id)
    if sovereign_token is None:
        raise ValueError("Sovereign token not found in WarpCore")

    rollup = get_rollup_service()
    inbound: List[Any] = []
    for tx in warp_core.get_transfer_remote_txs(
        origin_token_amount=sovereign_token.amount(amount),
        destination="sealevel",
        sender=recipient,
        recipient=sender,
    ):
        logger.info(f'Processing {tx.category} transaction on the rollup...')
        response = rollup.call(tx.transaction, signer)
        inbound.append(response.get("id"))

    result["inbound"] = inbound
    return result


@operator_command
def check_state_consistency(stop_height: int, max_slots: Optional[int] = None) -> Dict[str, Any]:
    """Assert rollup kernel state for each new slot until ``stop_height``."""
    config = get_config()
    rollup = get_rollup_service()
    rollup.wait_until_ready()
    worker = StateConsistencyWorker(
        rollup,
        stop_height=stop_height,
        poll_interval=config.poll_interval_seconds,
        max_slots=max_slots,
    )
    return worker.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="warp-ops",
        description="Operator scripts for the sealevel <-> sovereign warp route",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("setup-warp-route", help="register the warp route and configure the IGP")
    subcommands.add_parser("generate-solana-account", help="print a fresh Solana keypair")
    subcommands.add_parser("generate-validator", help="print a fresh EVM validator key")

    register = subcommands.add_parser("register", help="register a user on the rollup via Solana")
    register.add_argument("--embedded-user", default=DEFAULT_EMBEDDED_USER)

    transfer = subcommands.add_parser("transfer-roundtrip", help="transfer SOL to the rollup (and back)")
    transfer.add_argument("--amount", type=int, default=1, help="amount in lamports")
    transfer.add_argument("--recipient", default=DEPLOYER_ADDRESS)
    transfer.add_argument("--return-leg", action="store_true")

    consistency = subcommands.add_parser("check-state-consistency", help="assert rollup kernel state per slot")
    consistency.add_argument("--stop-height", type=int, required=True)
    consistency.add_argument("--max-slots", type=int, default=None)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "setup-warp-route":
        result = setup_warp_route()
    elif args.command == "generate-solana-account":
        result = generate_solana_account()
    elif args.command == "generate-validator":
        result = generate_validator()
    elif args.command == "register":
        result = solana_sovereign_register(embedded_user=args.embedded_user)
    elif args.command == "transfer-roundtrip":
        result = transfer_roundtrip(amount=args.amount, recipient=args.recipient, return_leg=args.return_leg)
    else:
        result = check_state_consistency(stop_height=args.stop_height, max_slots=args.max_slots)

    print(json.dumps(result, indent=2, default=str))
    return 1 if "error" in result else 0


if __name__ == "__main__":
    sys.exit(main())
