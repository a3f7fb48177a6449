"""
Gas subsidy ledger test suite.

Shared constants live here so tests and fixtures agree on addresses and the
starting timestamp.
"""

T0 = 1_700_000_000
ONE_ETHER = 10**18
OPERATOR = "0x00000000000000000000000000000000000000a1"
FUNDER = "0x00000000000000000000000000000000000000f1"
BENEFICIARY = "0x00000000000000000000000000000000000000b1"
