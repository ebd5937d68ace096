"""Validation preview interpretation."""
