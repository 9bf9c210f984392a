"""ssh-buddy: edit ~/.ssh/config safely and audit SSH key hygiene."""

__version__ = "0.1.0"
