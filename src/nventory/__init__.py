"""Canonical network asset inventory reconciled from multiple observation sources."""
