"""Workspace state: manifest, map, local object store, lock and package state."""
