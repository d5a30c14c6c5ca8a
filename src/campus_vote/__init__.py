"""Campus Vote: university elections mirrored onto a public ledger contract."""

__version__ = "0.1.0"
