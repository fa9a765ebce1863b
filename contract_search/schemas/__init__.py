"""Request and response models shared by the routes and services."""
