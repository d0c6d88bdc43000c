"""Roles module: role definitions, permission contexts and role assignment."""
from flask import Blueprint

roles_bp = Blueprint('roles', __name__)
