"""Cleaner dispatch service: match cleaning jobs to the nearest online cleaner."""
