"""Storage adapters: plain functions over a SQLAlchemy Session."""
