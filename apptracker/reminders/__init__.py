"""Reminder core: due-reminder query, dispatcher, scheduler and lifecycle mutator.

The scheduler runs as a single background task inside the API process (see
``apptracker.main``) or in its own process via ``python -m
apptracker.reminders.cli run``. Never run both against the same database.
"""
