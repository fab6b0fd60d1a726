"""
Tournament backend: tournaments, leagues, round-robin fixtures and standing tables.
"""
