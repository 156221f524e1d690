"""forumwiki: collaborative discussion threads merged into reviewed wiki documents."""

__version__ = "0.1.0"
