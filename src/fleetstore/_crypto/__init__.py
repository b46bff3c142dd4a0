"""Cryptographic helpers for fleetstore."""
