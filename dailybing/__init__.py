"""DailyBing: fetch daily Bing story images and titles into a local archive."""

__version__ = "1.0.0"
