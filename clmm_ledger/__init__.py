"""Event-sourced ledger and reconciliation engine for concentrated-liquidity positions."""
