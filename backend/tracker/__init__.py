"""Time tracker web service backed by a hosted database."""
