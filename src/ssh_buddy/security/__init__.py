"""Key inventory, known_hosts handling and security checks."""
