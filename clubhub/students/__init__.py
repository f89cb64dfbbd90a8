from flask import Blueprint

students_bp = Blueprint('students', __name__, url_prefix='/student')

from . import routes
