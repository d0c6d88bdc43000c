"""Organization structure module: departments, teams and the hierarchy index."""
from flask import Blueprint

org_bp = Blueprint('organization', __name__)
