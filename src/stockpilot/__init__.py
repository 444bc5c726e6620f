"""StockPilot — Mercado Livre inventory tracking with a server-side token proxy."""

__version__ = "0.1.0"
