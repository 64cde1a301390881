"""Boot sensor calibration and carving turn detection."""

__version__ = "0.1.0"
