"""Direct-messaging backend with an asynchronous delivery pipeline."""

__version__ = "1.0.0"
