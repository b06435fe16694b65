"""Pydantic schemas for the Dropmirror API."""
