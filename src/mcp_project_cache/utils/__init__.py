"""Process execution and file discovery helpers."""
