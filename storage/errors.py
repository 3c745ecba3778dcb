class StoreError(RuntimeError):
    """A store read or write failed after retries."""
