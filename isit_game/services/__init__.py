"""Service layer for the IS/IT game: round state, progression and metrics."""
