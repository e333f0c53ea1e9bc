"""friendly-uploader — command line client for OneDrive."""

__version__ = "0.1.0"
