"""Job status polling."""
