"""Hello Service: two greeting routes behind logging and recovery middleware."""
