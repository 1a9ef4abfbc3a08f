"""Database access: connection management, repositories and migrations."""
