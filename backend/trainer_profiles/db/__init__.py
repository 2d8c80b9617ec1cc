"""SQLAlchemy models, sessions, the slug view and pool monitoring for the trainer store."""
