from flask import Blueprint

clubs_bp = Blueprint('clubs', __name__, url_prefix='/club')

from . import routes
