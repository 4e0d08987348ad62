"""
SkinScan backend package.

This package provides a FastAPI application that authenticates callers,
classifies uploaded skin-lesion photos through an external model and keeps
per-user scan history in a key-value store.
"""
