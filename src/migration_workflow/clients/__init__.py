"""Migration service clients."""
