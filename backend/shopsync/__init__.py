"""Offline-first operation queue and sync engine for the shop API."""
