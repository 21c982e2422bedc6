"""Image request pipeline: validation, cache keys, single-flight, transforms."""
