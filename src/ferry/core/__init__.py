"""Listing, transfer and dispatch machinery."""
