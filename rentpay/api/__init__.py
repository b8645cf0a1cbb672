"""HTTP API for the payment lifecycle."""
