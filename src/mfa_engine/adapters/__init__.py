"""Port adapters: ``memory`` for tests, ``sqlalchemy`` for production storage."""
