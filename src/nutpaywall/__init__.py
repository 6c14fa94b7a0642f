"""NutPaywall: Cashu e-cash paywall for tool-serving HTTP APIs."""

__version__ = "1.0.0"
