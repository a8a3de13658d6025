"""PhiScan: golden-ratio proportion scoring with a generative design critique."""

__version__ = "0.1.0"
