"""
Persistence adapters.

base.py holds the table-agnostic statement helpers; each entity repository
supplies its own SQL text and row mapping.
"""
