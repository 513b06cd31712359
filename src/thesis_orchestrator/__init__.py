"""Section-by-section thesis generation with word budgets, chapter references and a finalization gate."""

__version__ = "0.1.0"
