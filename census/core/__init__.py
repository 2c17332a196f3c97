"""
Core primitives shared across census.

Configuration loading and the storage error taxonomy live here so that the
repositories, services and the command loop do not read os.environ or invent
their own exception types.
"""
