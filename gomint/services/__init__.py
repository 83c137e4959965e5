"""Domain services shared by the route modules."""
