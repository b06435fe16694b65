"""Dropmirror - mirror Dropbox files and folders to local storage."""
