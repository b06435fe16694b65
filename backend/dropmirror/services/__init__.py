"""Business logic services for Dropmirror."""
