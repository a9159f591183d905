"""Command line runners."""
