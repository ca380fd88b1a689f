"""Probing engine: candidates, probes, scan engine and report assembly."""
