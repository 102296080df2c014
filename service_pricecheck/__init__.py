"""Price-check service package."""
