"""Real-time delivery — who gets told about a message, and over which sockets.

Learn: Two pieces of shared state, each guarding itself with a lock:
1. ConnectionRegistry — identity ↔ live connections (presence)
2. SubscriptionIndex — identity ↔ conversation targets (interest)

RecipientResolver reads both plus conversation metadata to decide who should
hear about a message; EventDistributor owns the connection lifecycle and
pushes frames to every live connection of every recipient.
"""
