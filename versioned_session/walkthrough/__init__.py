"""Branch, commit, diff, reset and merge walkthrough."""
