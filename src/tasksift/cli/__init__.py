"""Command-line interface package for tasksift."""
