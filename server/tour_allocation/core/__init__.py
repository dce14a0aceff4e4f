"""Configuration, persistence, errors, locking and observability."""
