"""Business logic services used by handlers.

Services are imported lazily by handlers so a cold start only pays for the
backends it is configured with (SQLAlchemy is only needed for the SQL store).
"""

# Do NOT import services here - use lazy loading in handlers instead
