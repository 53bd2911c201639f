"""Learning-management web service mounted as a FUSE filesystem."""

__version__ = "0.1.0"
