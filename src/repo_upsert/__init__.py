"""repo-upsert: synchronize local files into a GitHub repository as one commit."""

__version__ = "0.1.0"
