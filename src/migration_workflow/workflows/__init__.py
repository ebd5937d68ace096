"""Import and export workflow controllers."""
