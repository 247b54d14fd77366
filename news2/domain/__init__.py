"""Domain models, errors and the result type shared by the services."""
