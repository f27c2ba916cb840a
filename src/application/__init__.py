"""
application - Use cases of the pain companion.

analysis/ holds the pure engines (extraction, patterns, aggregation).
services/ holds async services that receive their ports by injection.
Depends on domain/ only. Never imports from infrastructure/.
"""
