"""Apply and reset engines."""
