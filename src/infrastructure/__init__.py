"""
infrastructure - Concrete implementations of domain ports.

Contains all vendor-specific code: LangChain chat models and SQLite.
Depends on domain/ only (implements ports). Never imported by application/.
"""
