"""Immigration portal API."""
