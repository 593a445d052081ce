"""
Core package for FulfillmentSync.

This package includes:

- :mod:`FulfillmentSync.core.normalize` – Value normalization used for dirty checks and verification.
- :mod:`FulfillmentSync.core.records` – Order line records and the immutable baseline snapshot.
- :mod:`FulfillmentSync.core.tracker` – Dirty cell tracking against the baseline.
- :mod:`FulfillmentSync.core.ready` – Ready-set aggregation and delta quantities.
- :mod:`FulfillmentSync.core.dispatch` – Cell addressing and the single batched write.
- :mod:`FulfillmentSync.core.verify` – Read-back verification of accepted writes.
- :mod:`FulfillmentSync.core.reconcile` – Folding commit outcomes back into the tracker.
- :mod:`FulfillmentSync.core.session` – The edit session and asynchronous commit worker.
- :mod:`FulfillmentSync.core.debounce` – Coalescing of rapid operator input.
- :mod:`FulfillmentSync.core.service` – Google Sheets client construction.
- :mod:`FulfillmentSync.core.transport` – Batched Sheets reads and writes.
- :mod:`FulfillmentSync.core.loader` – Worksheet loading into records.
"""
