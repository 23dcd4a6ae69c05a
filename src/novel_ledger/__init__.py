"""Novel Ledger - versioned entity store with mention resolution for book projects."""

__version__ = "0.1.0"
