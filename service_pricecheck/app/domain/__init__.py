"""Domain logic: access gateway composition, request fingerprints and price analysis."""
