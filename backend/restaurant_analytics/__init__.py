"""Restaurant sales analytics API."""
