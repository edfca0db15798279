"""Huddle realtime building blocks shared by the backend application."""
