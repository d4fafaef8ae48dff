"""Language detection and translation collaborator."""
