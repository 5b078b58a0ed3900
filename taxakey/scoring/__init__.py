# Scoring package for the TaxaKey Identification Engine
"""
Probabilistic candidate scoring.

Provides the per-trait likelihood model, the posterior aggregator and
the match/conflict statistics shown beside each candidate.
"""
