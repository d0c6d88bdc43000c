"""Core Auth Models.

User model for Flask-Login. Only identity and company membership live
here; authority comes from the permission context resolved per request.
"""
from flask_login import UserMixin


class User(UserMixin):
    """User class for Flask-Login."""

    def __init__(self, user_data):
        self.id = user_data['id']
        self.company_id = user_data['company_id']
        self.email = user_data['email']
        self.name = user_data.get('name')
        self.status = user_data.get('status', 'active')

    @property
    def is_active(self):
        return self.status == 'active'

    def get_id(self):
        return str(self.id)
