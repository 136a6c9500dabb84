"""Builders for backend clients and configuration documents."""
