"""Package model: configuration, dependencies, discovery, build, store."""
