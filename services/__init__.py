"""
Service layer for rollup, Solana and AWS access.

Services wrap the Sovereign rollup REST API, the Solana JSON-RPC endpoint and
Secrets Manager, plus the Hyperlane builders that produce their transactions.
"""
