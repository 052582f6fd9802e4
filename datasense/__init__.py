"""DataSense core: natural-language to safe SQL, plus queued chat replies."""

__version__ = "0.1.0"
