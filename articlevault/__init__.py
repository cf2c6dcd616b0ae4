"""
ArticleVault Backend

A FastAPI service that saves web articles, extracts their readable content
and produces archival snapshots (PDF, HTML, EPUB, Markdown, text) uploaded
to the user's cloud storage.
"""

__version__ = "1.0.0"
