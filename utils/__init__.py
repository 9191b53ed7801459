"""Shared utilities: constants, time handling, validation, logging and errors."""
