"""
Cloud Functions for the SynapScribe media and transcription app.

Each module backs one function: account registration, sign-in, profile
management and media upload are HTTP functions, and audio transcription is
triggered by Cloud Storage ``object.finalized`` events.  The entry points
themselves live in :mod:`synapscribe.main`.
"""
