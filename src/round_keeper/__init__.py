"""Round keeper: operator and oracle-feeder agents for on-chain prediction rounds."""

__version__ = "0.1.0"
