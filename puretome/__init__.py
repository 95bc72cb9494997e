"""
PureTome - a collaborative memoir-writing platform.

Authors write memoirs made of chapters and events, invite collaborators by
email, and discuss drafts in comments.
"""

__version__ = "0.1.0"
