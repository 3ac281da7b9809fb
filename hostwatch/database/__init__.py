"""Persistence for stored query result sets."""
