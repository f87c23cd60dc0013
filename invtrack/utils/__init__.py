"""Utility helpers shared by models, services and the HTTP adapter."""
