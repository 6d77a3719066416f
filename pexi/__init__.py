"""Pexi Ai: a floating chat window for the Gemini API."""
