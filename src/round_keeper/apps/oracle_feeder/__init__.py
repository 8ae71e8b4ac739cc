"""Oracle price feeder.

Fetch a spot price from an exchange API and push it, scaled to the
oracle's fixed-point format, to the on-chain oracle on a fixed cadence.
"""
