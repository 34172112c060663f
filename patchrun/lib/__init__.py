"""Configuration, Gerrit access, logging and other shared helpers."""
