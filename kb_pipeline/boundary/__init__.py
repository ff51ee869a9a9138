"""
Boundary layer: database, external providers, and object storage adapters.
"""
