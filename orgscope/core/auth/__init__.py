"""Authentication glue: the Flask-Login user model."""
