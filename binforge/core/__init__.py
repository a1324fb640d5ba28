"""The binary pipeline: hashing, chunk planning, upload, signing, resolution.

Modules
-------
hasher
    SHA-256 helpers for whole binaries and individual chunks.
chunk_planner
    Fixed-size, 1-indexed chunk plans.
state_machine
    Allowed binary state transitions.
retry
    Fixed-interval polling and rate-limit backoff.
uploader
    ``BinaryUploader``: resumable concurrent multipart upload.
signer
    ``SignatureOrchestrator``: multi-key signing with aggregated failures.
processor
    ``BinaryProcessor``: the lifecycle driver.
resolver
    ``ResourceResolver``: get-or-create with immutability checks.
"""
