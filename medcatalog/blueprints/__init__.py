"""Blueprint packages. Each exposes its Blueprint object from routes.py."""
