"""Domain layer: entities, value objects, durable structures and errors."""
