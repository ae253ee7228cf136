"""mediasync — offline-resilient media upload agent for inspection devices."""

__version__ = "0.1.0"
