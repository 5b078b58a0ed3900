# CLI package for the TaxaKey Identification Engine
"""
Read-only CLI interface for running identifications locally.

Commands:
    taxakey rank     — Show ranked candidates
    taxakey suggest  — Show the best next questions
    taxakey explain  — Show the justification for a candidate
    taxakey info     — Show a summary of the matrix
"""
