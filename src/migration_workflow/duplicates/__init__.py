"""Duplicate resolution."""
