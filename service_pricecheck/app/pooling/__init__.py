"""
Request pooling package.

Collapses concurrent identical requests onto a single upstream call.
"""
