"""
Persistence adapters.

SQLRepository talks to the relational store, LocalObjectStore to the uploaded
images. Services depend on these instead of opening sessions or files directly.
"""
