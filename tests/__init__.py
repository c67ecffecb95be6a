"""Tests for the Urja Mitra dashboard backend."""
