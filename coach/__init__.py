"""CSR Coach backend: authorization policy and the API that enforces it."""
