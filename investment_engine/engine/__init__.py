"""Pure lifecycle, valuation and ledger rules: no I/O, no clock reads."""
