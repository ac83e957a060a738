"""
Shared constants for the local sealevel <-> sovereign devnet.
"""

# registry/chains/metadata.yaml
SOLANA_DOMAIN_ID = 1337

# solana/environments/local/warp-routes/sealevel-sovereignsolana/program-ids.json
SOLANA_WARP_ROUTE_ID = (
    "0xcbb6266a1860446ea4ea06eaa02c443b64e3358756fb2e28e2476c57b3521ac7"
)

# Rollup account that deploys and administers the warp route
DEPLOYER_ADDRESS = "7bWFTGcxY59KfAc5p7SaBaPieQkcSBXs7xCyRoL7vPtf"
DEPLOYER_PUBLIC_KEY = (
    "61fcf0f466bc20ca3882d46ae07d65227e31cfaefb852bc8f579415247565dd4"
)

# tx_signer_private_key.json of the local rollup
LOCAL_DEV_SOVEREIGN_PRIVATE_KEY = bytes([
    39, 195, 119, 77, 82, 231, 30, 162, 102, 169, 197, 37, 108, 217, 139, 154,
    230, 126, 98, 242, 174, 94, 211, 74, 102, 141, 184, 234, 168, 62, 27, 172,
])

# Solana account funded by the local validator genesis
SOLANA_ACCOUNT_ADDRESS = "9rAXRptd1YDQjCJJQbF4GaZ9JHaLx93rNfJUDpcvPxXc"

LOCAL_VALIDATOR_ADDRESS = "0x2c25Ab04F9cD2beC3D98921b02AFBE54B792cad0"

REGISTER_PROGRAM_ID = "HX6EowhA5XwWj29iTFeqhprg1gUxHgv6RNUu4bRtUgob"
SEALEVEL_SPL_NOOP_ADDRESS = "noopb9bkMVfRPU8AsbpTUg8AQkHtKwMYZiFUjNRtMmV"

# Placeholder embedded user for registration smoke tests
DEFAULT_EMBEDDED_USER = "11111111111111111111111111111113"

TOKEN_DECIMALS = 9

MAX_U128 = 2**128 - 1

USER_REGISTERED_EVENT_KEY = "SolanaRegistration/UserRegistered"
ROUTE_ALREADY_REGISTERED_MESSAGE = "was already registered by sender"
