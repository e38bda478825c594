"""Deployment agent for a live game server.

Pulls server content from a git repository, mirrors selected directories
into the server's data directory and restarts the server over RCON after
a player-visible countdown.
"""

__version__ = "0.1.0"
