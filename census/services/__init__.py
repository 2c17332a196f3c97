"""
Use cases built on top of the repositories.

DatabaseService is the single entry point for storage; the command loop and
the legacy import receive an instance explicitly instead of looking one up.
"""
