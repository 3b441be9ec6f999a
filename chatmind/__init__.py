"""Room session state synchronizer for group chat with an @AI assistant."""

__version__ = "0.1.0"
