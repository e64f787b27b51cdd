"""Infrastructure layer: database plumbing and SQLModel repositories."""
