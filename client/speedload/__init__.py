"""SpeedLoad: hash manifests and section archive extraction for the game downloader."""

__version__ = "0.3.0"
