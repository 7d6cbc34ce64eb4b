"""Flightcheck admin command line tools."""
