"""Test suite for the contact merge engine."""
