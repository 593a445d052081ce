"""
Logging subsystem for FulfillmentSync.

Modules:

- :mod:`FulfillmentSync.log.log` – Root logger setup, Qt message bridge and the in-memory log tank.
"""
