"""Helpers shared by routes and services: responses, validation, decorators, storage."""
