from __future__ import annotations
"""
lockbox test suite package.

Shared constants for the tests. Accounts are plain strings; the asset symbol
matches the default `LockboxConfig`.
"""

ASSET = "ANM"

ALICE = "anim1alice"
BOB = "anim1bob"
CAROL = "anim1carol"

# Funding minted to every test account by the `ledger` fixture.
START_FUNDS = 1_000_000
