"""unified-search - ranked full-text search over posts, activities, users and tags"""

__version__ = "0.1.0"
