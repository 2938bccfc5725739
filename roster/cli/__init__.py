"""Roster command line interface."""
