"""
Core sync engine.

``MediaSync`` sequences the phases of a run and delegates each of them:
``OfflineActionReporter`` uploads queued actions, ``DataReconciler``
exchanges the local inventory with the server, and ``ContentFetcher``
transfers new items.
"""
