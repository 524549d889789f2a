"""Exceptions raised at the top level of a reminder run."""


class ReminderError(Exception):
    """Base class for reminder job failures."""


class ConfigurationError(ReminderError):
    """Configuration or credentials could not be loaded. Fatal before dispatch."""


class DatastoreError(ReminderError):
    """The subscription datastore could not be queried."""
