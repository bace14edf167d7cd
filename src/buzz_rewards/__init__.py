"""Redemption, mileage ledger and settlement core for Buzz local rewards."""
