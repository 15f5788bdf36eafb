"""dashnotify engine — configuration, errors, logging and identity tokens."""
