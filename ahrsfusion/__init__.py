"""FDILink AHRS frame decoding and extended Kalman filter state estimation."""

__version__ = "0.1.0"
__all__ = ["__version__"]