"""patchrun - apply Gerrit changes across many repository checkouts."""

__version__ = "0.1.0"
