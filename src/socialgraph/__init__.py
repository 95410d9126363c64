"""Social graph service: people, organizations and the connections between them."""

__version__ = "0.1.0"
