# Ingestion package for the TaxaKey Identification Engine
"""
Matrix ingestion.

Maps serialized trait matrices into the immutable domain model.
"""
