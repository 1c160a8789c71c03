"""Service layer: business logic on top of the MongoDB collections."""
