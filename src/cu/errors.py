class CuError(Exception):
    """Base error for anything cu reports to the user as a one-line message."""
    pass
