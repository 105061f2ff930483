"""Game Backlog Tracker authentication and session service."""
