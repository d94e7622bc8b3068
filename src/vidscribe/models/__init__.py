"""Domain models shared by the vidscribe services."""
