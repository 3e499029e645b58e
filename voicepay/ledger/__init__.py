"""Transaction ledger: records, their state machine and the confirmation gate."""
