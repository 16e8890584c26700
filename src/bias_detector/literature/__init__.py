"""Literature search collaborators."""
