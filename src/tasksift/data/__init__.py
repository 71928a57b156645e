"""Bundled package data for tasksift."""
