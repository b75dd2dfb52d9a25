"""ClipSpark: captioned vertical highlight clips from long-form videos."""

__version__ = "1.0.0"
