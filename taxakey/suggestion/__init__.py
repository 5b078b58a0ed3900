# Suggestion package for the TaxaKey Identification Engine
"""
Next-question recommendation.

Ranks unobserved questions by how much asking them is expected to
reduce the remaining uncertainty over candidates.
"""
