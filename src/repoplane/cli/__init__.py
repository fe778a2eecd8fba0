"""RepoPlane CLI."""
