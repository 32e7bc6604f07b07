"""Treasury collaborator holding deposited value."""
