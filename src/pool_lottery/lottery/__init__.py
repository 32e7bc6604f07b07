"""Lottery core: ledgers, entry registration, winner selection and round closure."""
