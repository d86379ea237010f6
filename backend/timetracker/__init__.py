"""Multitenant time tracker backend."""
