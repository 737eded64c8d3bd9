"""
DTE kernel: issuance of El Salvador electronic tax documents.

Layers, innermost first:
    domain/     money, identifiers, amount in words, DTOs (pure)
    db/         declarative base, Database handle, immutability listeners
    models/     ORM tables
    services/   flush-only writers (sequence allocator, stock ledger,
                invoice writer)
    selectors/  read-only queries returning DTOs
"""

__version__ = "0.1.0"
