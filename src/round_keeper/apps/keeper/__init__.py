"""Prediction round keeper.

Poll the prediction contract on a fixed cadence, bootstrap genesis when
needed, and execute each round inside its on-chain time window. At most
one transaction is in flight at a time and every epoch gets at most one
terminal outcome.
"""
